# config.py
import os

# ======= Solve defaults =======
# Seconds; 0 (or negative) disables the deadline.
TIMEOUT  = float(os.getenv("BP_TIMEOUT", "0"))
MINIMIZE = int(os.getenv("BP_MINIMIZE", "1")) != 0

# ======= Engine =======
ENGINE          = os.getenv("BP_ENGINE", "backtracking").strip().lower()
CANONICAL_ORDER = int(os.getenv("BP_CANONICAL_ORDER", "1")) != 0

# First-fit-decreasing warm start for the minimization loop.  Off by default
# so the driver walks down from one bin per item.
CONSTRUCTIVE_SEED = int(os.getenv("BP_CONSTRUCTIVE_SEED", "0")) != 0

# ======= Progress / logging =======
PROGRESS_INTERVAL = float(os.getenv("BP_PROGRESS_INTERVAL", "1.0"))
LOG_LEVEL         = os.getenv("BP_LOG_LEVEL", "WARNING").strip().upper()
LOG_DIR           = os.getenv("BP_LOG_DIR", "logs")

# ======= CP-SAT knobs =======
CP_SAT_WORKERS = int(os.getenv("BP_CP_SAT_WORKERS", "1"))

# ======= Output names =======
SOLUTION_OUT = os.getenv("BP_SOLUTION_OUT", "solution.txt")

class CFG:
    TIMEOUT  = TIMEOUT
    MINIMIZE = MINIMIZE

    ENGINE            = ENGINE
    CANONICAL_ORDER   = CANONICAL_ORDER
    CONSTRUCTIVE_SEED = CONSTRUCTIVE_SEED

    PROGRESS_INTERVAL = PROGRESS_INTERVAL
    LOG_LEVEL         = LOG_LEVEL
    LOG_DIR           = LOG_DIR

    CP_SAT_WORKERS = CP_SAT_WORKERS

    SOLUTION_OUT = SOLUTION_OUT

__all__ = ["CFG"]
