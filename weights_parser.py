# weights_parser.py — problem text / form parser
import re
from typing import Any, List, Optional, TextIO, Tuple

_SEP_RE = re.compile(r"[\s,;]+")


class InputError(ValueError):
    """Malformed problem description."""


def _to_int(tok: str, what: str) -> int:
    try:
        return int(tok)
    except ValueError:
        raise InputError(f"Bad {what}: {tok!r} is not an integer") from None


def parse_input(text: str) -> Tuple[int, List[int]]:
    """
    Parse ``<capacity> <w1> <w2> ... 0`` into (capacity, weights).

    Tokens are whitespace separated.  The weight list ends at the first 0 or at
    end of input; anything after the terminating 0 is ignored.
    """
    tokens = (text or "").split()
    if not tokens:
        raise InputError("Bad input: missing bin capacity")

    capacity = _to_int(tokens[0], "capacity")
    if capacity <= 0:
        raise InputError(f"Bad capacity: {capacity} must be positive")

    weights: List[int] = []
    for tok in tokens[1:]:
        w = _to_int(tok, "weight")
        if w == 0:
            break
        if w < 0:
            raise InputError(f"Bad weight: {w} must be positive")
        weights.append(w)
    return capacity, weights


def parse_stream(stream: TextIO) -> Tuple[int, List[int]]:
    return parse_input(stream.read())


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _weights_from(value: Any) -> List[int]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        # Form posts arrive as a list of strings; JSON as a list of numbers.
        if len(value) == 1 and isinstance(value[0], str):
            value = value[0]
        else:
            out: List[int] = []
            for v in value:
                out.extend(_weights_from(v))
            return out
    if isinstance(value, bool):
        raise InputError(f"Bad weight: {value!r} is not an integer")
    if isinstance(value, int):
        return [value]
    if isinstance(value, float):
        if not value.is_integer():
            raise InputError(f"Bad weight: {value!r} is not an integer")
        return [int(value)]
    return [_to_int(tok, "weight") for tok in _SEP_RE.split(str(value).strip()) if tok]


def _until_zero(weights: List[int]) -> List[int]:
    out: List[int] = []
    for w in weights:
        if w == 0:
            break
        out.append(w)
    return out


def parse_request(form_like: Any) -> Tuple[Optional[int], List[int], Optional[str]]:
    """
    Return (capacity, weights, error_message_or_None) from a form/JSON mapping.

    Accepts ``capacity`` with ``weights`` (list or separated string), or a
    single ``problem`` field holding the plain-text format of parse_input.
    As in that format, the weights end at the first 0.
    """
    if not isinstance(form_like, dict) or not form_like:
        return None, [], "nothing parsed from request"

    try:
        problem = _first(form_like.get("problem"))
        if isinstance(problem, str) and problem.strip():
            capacity, weights = parse_input(problem)
            return capacity, weights, None

        raw_cap = _first(form_like.get("capacity"))
        if raw_cap is None or str(raw_cap).strip() == "":
            return None, [], "missing bin capacity"
        capacity = _to_int(str(raw_cap).strip(), "capacity")
        if capacity <= 0:
            return None, [], f"Bad capacity: {capacity} must be positive"

        weights = _until_zero(_weights_from(form_like.get("weights")))
    except InputError as e:
        return None, [], str(e)

    bad = [w for w in weights if w < 0]
    if bad:
        return None, [], f"Bad weight: {bad[0]} must be positive"
    return capacity, weights, None


__all__ = ["InputError", "parse_input", "parse_stream", "parse_request"]
