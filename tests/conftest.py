import os
import tempfile

# Keep the attempt log and the progress state file out of the source tree.
_LOG_DIR = tempfile.mkdtemp(prefix="binfit-tests-")
os.environ.setdefault("BP_LOG_DIR", _LOG_DIR)
os.environ.setdefault("BP_PROGRESS_STATE_FILE", os.path.join(_LOG_DIR, "progress_state.json"))
