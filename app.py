# app.py — bin fitting front end; progress no-cache
from __future__ import annotations
import logging
import os
import time
from typing import Any, Dict, Optional, Tuple

from flask import Flask, request, render_template, send_from_directory, jsonify, url_for

from solver.orchestrator import solve_orchestrator, ENGINES
from weights_parser import parse_request
from config import CFG
from io_files import format_solution, write_solution
from render import render_result
from models import Solution, Status

from progress import (
    reset as progress_reset,
    as_json as progress_json,
    start_timer as progress_start,
    set_status, set_done, set_result_url,
)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

logger = logging.getLogger(__name__)


def _resolve_output_paths(configured: str, fallback: str) -> Tuple[str, str, str]:
    name = (configured or "").strip() or fallback
    if os.path.isabs(name):
        full_path = name
    else:
        full_path = os.path.abspath(os.path.join(BASE_DIR, name))
    directory = os.path.dirname(full_path) or BASE_DIR
    filename = os.path.basename(full_path) or fallback
    return full_path, directory, filename


_SOLUTION_FULL_PATH, SOLUTION_DIR, SOLUTION_FILENAME = _resolve_output_paths(
    CFG.SOLUTION_OUT, "solution.txt"
)

_STATUS_LABELS = {
    Status.SOLVED: "Solved",
    Status.UNSOLVABLE: "Unsolvable",
    Status.UNKNOWN: "Unknown",
}


def _empty_result() -> Dict[str, Any]:
    return {
        "ok": False,
        "status": Status.UNKNOWN.value,
        "reason": "",
        "capacity": 0,
        "item_count": 0,
        "bin_count": 0,
        "proven_minimal": False,
        "bins": [],
        "lines": [],
        "elapsed_str": "0s",
        "svg": "",
        "legend": "",
        "solution_filename": SOLUTION_FILENAME,
    }


LAST_RESULT: Dict[str, Any] = _empty_result()

app = Flask(__name__, template_folder="templates")


@app.after_request
def _no_cache_progress(resp):
    if request.path == "/progress":
        resp.headers["Cache-Control"] = "no-store, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        resp.headers["Expires"] = "0"
    return resp


@app.route("/")
def index():
    return render_template(
        "index.html",
        engines=ENGINES,
        default_engine=CFG.ENGINE,
        default_minimize=CFG.MINIMIZE,
        default_timeout=CFG.TIMEOUT,
    )


@app.route("/result/latest")
def result_latest():
    if request.args.get("format") == "json":
        return jsonify(LAST_RESULT)
    return render_template("result.html", **LAST_RESULT)


def _fmt_elapsed(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    m, s = divmod(int(seconds), 60)
    if m == 0:
        return f"{s}s"
    h, m = divmod(m, 60)
    if h == 0:
        return f"{m}m {s}s"
    return f"{h}h {m}m {s}s"


def _merge_like_mapping() -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        merged.update(payload)

    form_dict = request.form.to_dict(flat=False)
    for k, v in form_dict.items():
        merged.setdefault(k, v if isinstance(v, list) else [v])

    args_dict = request.args.to_dict(flat=False)
    for k, v in args_dict.items():
        merged.setdefault(k, v if isinstance(v, list) else [v])

    return merged


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _flag(value: Any, default: bool) -> bool:
    v = _first(value)
    if v is None or v == "":
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("1", "true", "yes", "on")


def _seconds(value: Any, default: Optional[float]) -> Optional[float]:
    v = _first(value)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def _finalize_solver_progress(solution: Solution, message: str) -> None:
    """Write the terminal solver status without clobbering failure states."""

    set_status(_STATUS_LABELS[solution.status])
    set_done(solution.solved, status=_STATUS_LABELS[solution.status], message=message)


def _summary(solution: Solution) -> str:
    if solution.status is Status.SOLVED:
        if solution.proven_minimal:
            return f"Packed into {solution.bin_count} bins (minimal)."
        return f"Packed into {solution.bin_count} bins (not proven minimal)."
    if solution.status is Status.UNSOLVABLE:
        return "No assignment exists."
    return "Stopped before a solution was found."


def _respond(wants_json: bool, code: int = 200):
    if wants_json:
        return jsonify(LAST_RESULT), code
    return render_template("result.html", **LAST_RESULT), code


def _fail(reason: str, t0: float, wants_json: bool, code: int):
    set_status("Error")
    set_done(False, status="Error", message=reason)
    LAST_RESULT.clear()
    LAST_RESULT.update(_empty_result())
    LAST_RESULT.update({
        "reason": reason,
        "elapsed_str": _fmt_elapsed(time.time() - t0),
    })
    set_result_url(url_for("result_latest"))
    return _respond(wants_json, code)


@app.route("/solve", methods=["POST"])
def solve():
    progress_reset()
    progress_start()
    set_status("Solving")

    t0 = time.time()
    wants_json = request.is_json
    like = _merge_like_mapping()

    capacity, weights, err = parse_request(like)
    if err:
        return _fail(f"Bad problem: {err}", t0, wants_json, 400)

    minimize = _flag(like.get("minimize"), CFG.MINIMIZE)
    timeout = _seconds(like.get("timeout"), CFG.TIMEOUT)
    engine = str(_first(like.get("engine")) or CFG.ENGINE)
    watchdog = _flag(like.get("watchdog"), False)

    try:
        solution = solve_orchestrator(
            capacity,
            weights,
            minimize=minimize,
            timeout=timeout,
            engine=engine,
            watchdog=watchdog,
        )
    except ValueError as e:
        return _fail(f"Bad problem: {e}", t0, wants_json, 400)
    except Exception as e:
        logger.exception("Solver failed")
        return _fail(f"orchestrator exception: {type(e).__name__}: {e}", t0, wants_json, 500)

    summary = _summary(solution)
    _finalize_solver_progress(solution, summary)

    svg_markup = legend_html = ""
    solution_name = SOLUTION_FILENAME
    if solution.solved:
        svg_markup, legend_html = render_result(solution.bins, capacity)
        try:
            solution_path = write_solution(solution, BASE_DIR)
            solution_name = os.path.basename(solution_path) or SOLUTION_FILENAME
        except OSError:
            logger.warning("Could not write %s", SOLUTION_FILENAME, exc_info=True)

    LAST_RESULT.clear()
    LAST_RESULT.update({
        "ok": solution.solved,
        "status": solution.status.value,
        "reason": summary,
        "capacity": capacity,
        "item_count": len(weights),
        "bin_count": solution.bin_count,
        "proven_minimal": solution.proven_minimal,
        "bins": solution.assignment(),
        "lines": format_solution(solution, values=True),
        "elapsed_str": _fmt_elapsed(time.time() - t0),
        "svg": svg_markup,
        "legend": legend_html,
        "solution_filename": solution_name,
    })
    set_result_url(url_for("result_latest"))
    return _respond(wants_json)


@app.route("/download/solution")
def download_solution():
    return send_from_directory(SOLUTION_DIR, SOLUTION_FILENAME, as_attachment=True)


@app.route("/progress")
def progress_view():
    return jsonify(progress_json())


if __name__ == "__main__":
    progress_start()
    app.run(debug=False)
