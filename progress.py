"""Shared progress state for the web UI and the attempt log.

One ``PROGRESS`` dict per process, guarded by ``PROGRESS_LOCK`` and mirrored
to a JSON state file after every change so a second process (another worker
of the web server) can serve ``/progress`` for a solve it did not run.
"""
from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

from config import CFG

PROGRESS_LOCK = threading.Lock()


def _log_dir() -> Path:
    configured = Path(getattr(CFG, "LOG_DIR", "logs") or "logs")
    if configured.is_absolute():
        return configured
    return Path(__file__).resolve().parent / configured


def _state_file_path() -> Path:
    configured = os.environ.get("BP_PROGRESS_STATE_FILE")
    if configured:
        return Path(configured)
    return _log_dir() / "progress_state.json"


STATE_FILE = _state_file_path()
_LAST_STATE_MTIME: float = 0.0


# ------------------------------
# Attempt log
# ------------------------------

def _init_logger() -> logging.Logger:
    logger = logging.getLogger("binfit.attempt_log")
    if logger.handlers:
        return logger
    log_path = _log_dir() / "solver_attempts.log"
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        # No writable log directory: the attempt log is off, progress is not.
        return logger
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


ATTEMPT_LOGGER = _init_logger()


def _emit(event: str, **fields: Any) -> None:
    if not ATTEMPT_LOGGER.handlers:
        return
    extras = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None and v != "")
    if extras:
        ATTEMPT_LOGGER.info("%s | %s", event, extras)
    else:
        ATTEMPT_LOGGER.info("%s", event)


def _seconds_label(seconds: Optional[float]) -> Optional[str]:
    return None if seconds is None else f"{max(0.0, seconds):.2f}s"


class _AttemptClock:
    """Which bin count is being tried, and since when."""

    def __init__(self) -> None:
        self.label = ""
        self.started: Optional[float] = None
        self.run_started: Optional[float] = None

    def switch(self, label: str, reason: Optional[str]) -> None:
        if label == self.label:
            return
        now = time.time()
        self.close(now, reason=reason or "switch")
        self.label = label
        if label:
            self.started = now
            _emit("Attempt started", bins=label)

    def close(self, now: float, *, reason: str) -> None:
        if not self.label:
            return
        took = None if self.started is None else now - self.started
        _emit("Attempt finished", bins=self.label, duration=_seconds_label(took), reason=reason)
        self.label = ""
        self.started = None

    def finish_run(self, now: float) -> Optional[float]:
        took = None if self.run_started is None else now - self.run_started
        self.run_started = None
        return took


_CLOCK = _AttemptClock()


# ------------------------------
# State
# ------------------------------

def _fresh(run_id: int) -> Dict[str, Any]:
    return {
        "status": "Idle",       # Idle | Solving | Solved | Unsolvable | Unknown | Error
        "attempt": "",          # bin count currently being tried, e.g. "4 bins"
        "percent": 0.0,         # 0..100 depth estimate for the current attempt
        "best_bins": 0,         # fewest bins solved so far in this run
        "item_count": 0,
        "elapsed_start": None,  # time.time() when the run started
        "elapsed": 0.0,
        "message": "",
        "done": False,
        "ok": None,
        "result_url": "",
        "run_id": run_id,
    }


PROGRESS: Dict[str, Any] = _fresh(0)


def _write_locked() -> None:
    global _LAST_STATE_MTIME
    tmp = STATE_FILE.with_name(STATE_FILE.name + ".tmp")
    try:
        STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(json.dumps(PROGRESS, separators=(",", ":")), encoding="utf-8")
        tmp.replace(STATE_FILE)
        _LAST_STATE_MTIME = STATE_FILE.stat().st_mtime
    except OSError:
        # A read-only state file must not stop the solver.
        pass


def _read_locked(force: bool = False) -> None:
    global _LAST_STATE_MTIME
    try:
        mtime = STATE_FILE.stat().st_mtime
        if not force and mtime <= _LAST_STATE_MTIME:
            return
        data = json.loads(STATE_FILE.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return
    if isinstance(data, dict):
        PROGRESS.update({k: data[k] for k in PROGRESS if k in data})
        _LAST_STATE_MTIME = mtime


def _tick_locked() -> None:
    t0 = PROGRESS.get("elapsed_start")
    if t0 is not None:
        PROGRESS["elapsed"] = time.time() - float(t0)


def _update(**changes: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS.update(changes)
        _write_locked()


def _as_int(v: Any) -> int:
    try:
        return max(0, int(v))
    except (TypeError, ValueError):
        return 0


def _as_float(v: Any, hi: Optional[float] = None) -> float:
    try:
        f = max(0.0, float(v))
    except (TypeError, ValueError):
        return 0.0
    return f if hi is None else min(hi, f)


# ------------------------------
# Run lifecycle
# ------------------------------

def reset() -> None:
    with PROGRESS_LOCK:
        _CLOCK.close(time.time(), reason="reset")
        _CLOCK.run_started = None
        PROGRESS.update(_fresh(_as_int(PROGRESS.get("run_id")) + 1))
        _emit("Progress reset", run=PROGRESS["run_id"])
        _write_locked()


def start_timer() -> None:
    with PROGRESS_LOCK:
        now = time.time()
        PROGRESS["elapsed_start"] = now
        PROGRESS["elapsed"] = 0.0
        _CLOCK.run_started = now
        _emit("Run timer started")
        _write_locked()


def set_status(v: Any) -> None:
    _update(status=str(v))


def set_attempt(v: Any, *, reason: Optional[str] = None) -> None:
    """Start a new bin count; the depth estimate restarts from zero."""
    label = "" if v is None else str(v)
    with PROGRESS_LOCK:
        PROGRESS["attempt"] = label
        PROGRESS["percent"] = 0.0
        _CLOCK.switch(label, reason)
        _write_locked()


def set_progress_pct(pct: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS["percent"] = _as_float(pct, 100.0)
        _tick_locked()
        _write_locked()


def set_best_bins(n: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS["best_bins"] = _as_int(n)
        _emit("Solution recorded", bins=PROGRESS["best_bins"], attempt=_CLOCK.label or None)
        _write_locked()


def set_item_count(n: Any) -> None:
    _update(item_count=_as_int(n))


def set_elapsed(seconds: Any) -> None:
    _update(elapsed=_as_float(seconds))


def set_message(msg: Any) -> None:
    _update(message="" if msg is None else str(msg))


def set_result_url(url: Any) -> None:
    _update(result_url="" if url is None else str(url))


def log_attempt_detail(event: str, **fields: Any) -> None:
    with PROGRESS_LOCK:
        fields.setdefault("bins", _CLOCK.label or None)
        _emit(event, **fields)


def set_done(ok: Any = None, *, status: Any = None, message: Any = None) -> None:
    """Mark the run complete.

    ``status`` sets the final label (``Solved``/``Unsolvable``/``Unknown``);
    without it ``ok`` decides between ``Solved`` and ``Error``.  With neither,
    a run still marked ``Idle`` or ``Solving`` becomes ``Solved``.
    """
    final = None if status is None else str(status)
    if final is None and ok is not None:
        final = "Solved" if ok else "Error"

    with PROGRESS_LOCK:
        now = time.time()
        _tick_locked()
        if final is not None:
            PROGRESS["status"] = final
        elif PROGRESS.get("status") in ("", "Idle", "Solving", None):
            PROGRESS["status"] = "Solved"
        PROGRESS["ok"] = PROGRESS["status"] == "Solved" if ok is None else bool(ok)
        PROGRESS["percent"] = 100.0
        PROGRESS["done"] = True
        if message is not None:
            PROGRESS["message"] = str(message)

        _CLOCK.close(now, reason="run_complete")
        _emit(
            "Run finished",
            status=PROGRESS["status"],
            ok=PROGRESS["ok"],
            duration=_seconds_label(_CLOCK.finish_run(now)),
            best_bins=PROGRESS["best_bins"] or None,
            message=PROGRESS["message"],
        )
        _write_locked()


# ------------------------------
# Snapshots for the UI
# ------------------------------

def _elapsed_label(seconds: float) -> str:
    m, s = divmod(int(max(0.0, float(seconds))), 60)
    if m == 0:
        return f"{s}s"
    h, m = divmod(m, 60)
    return f"{m}m {s}s" if h == 0 else f"{h}h {m}m"


def snapshot() -> Dict[str, Any]:
    with PROGRESS_LOCK:
        _read_locked()
        _tick_locked()
        snap = {k: v for k, v in PROGRESS.items() if k != "elapsed_start"}
    snap["elapsed_str"] = _elapsed_label(snap["elapsed"])
    return snap


def as_json() -> Dict[str, Any]:
    return snapshot()


with PROGRESS_LOCK:
    _read_locked(force=True)
