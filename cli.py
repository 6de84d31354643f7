# cli.py — command-line front end
"""Backtracking solution to the bin packing problem.

Reads a bin capacity followed by item weights terminated by ``0`` and prints a
SAT-solver style report::

    c <comments>
    s SAT | s UNSAT | s UNKNOWN
    v <weights of bin 1>
    v <weights of bin 2>
"""
from __future__ import annotations

import argparse
import logging
import re
import sys
from typing import List, Optional, Sequence

from config import CFG
from io_files import format_solution
from solver.orchestrator import ENGINES, solve_orchestrator
from weights_parser import InputError, parse_stream

_LEVELS = [logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG]
_DURATION_RE = re.compile(r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>ms|s|m|h)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(text: str) -> float:
    """``1.5``, ``500ms``, ``10s``, ``2m`` or ``1h`` as seconds."""
    m = _DURATION_RE.match(text or "")
    if not m:
        raise argparse.ArgumentTypeError(f"invalid duration: {text!r}")
    return float(m.group("value")) * _UNIT_SECONDS[m.group("unit") or "s"]


def _default_level() -> int:
    level = logging.getLevelName(str(getattr(CFG, "LOG_LEVEL", "WARNING")))
    return level if isinstance(level, int) else logging.WARNING


def _log_level(verbose: int, quiet: int) -> int:
    base = _default_level()
    idx = _LEVELS.index(base) if base in _LEVELS else 1
    idx = max(0, min(len(_LEVELS) - 1, idx + verbose - quiet))
    return _LEVELS[idx]


def configure_logging(level: int, stream=None) -> None:
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "c [%(levelname)-5s %(asctime)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="binfit",
        description="A backtracking solution to the bin packing problem",
    )
    p.add_argument("-i", "--input-file", type=argparse.FileType("r", encoding="utf-8"),
                   default=None, help="input file to parse (uses stdin by default)")
    p.add_argument("-t", "--timeout", type=parse_duration, default=None,
                   help="timeout for the computation, e.g. 10s, 500ms, 2m")
    p.add_argument("--values", action="store_true", help="show the values")
    p.add_argument("-m", "--minimize-bins", action="store_true",
                   help="try to minimize the number of bins to use")
    p.add_argument("--engine", choices=ENGINES, default=None,
                   help=f"search engine (default: {CFG.ENGINE})")
    p.add_argument("--watchdog", action="store_true",
                   help="search on a worker thread supervised by a deadline watchdog")
    p.add_argument("-v", "--verbose", action="count", default=0, help="more logging")
    p.add_argument("-q", "--quiet", action="count", default=0, help="less logging")
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(_log_level(args.verbose, args.quiet))
    log = logging.getLogger("binfit")

    stream = args.input_file or sys.stdin
    try:
        capacity, weights = parse_stream(stream)
    except InputError as e:
        print(f"binfit: {e}", file=sys.stderr)
        return 2
    finally:
        if args.input_file is not None:
            args.input_file.close()

    log.info("Read capacity %d and %d weights", capacity, len(weights))

    solution = solve_orchestrator(
        capacity,
        weights,
        minimize=args.minimize_bins,
        timeout=args.timeout,
        engine=args.engine,
        watchdog=args.watchdog,
    )
    log.info("Finished in %.3fs", solution.elapsed_sec)

    lines: List[str] = format_solution(solution, values=args.values)
    sys.stdout.write("\n".join(lines) + "\n")
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
