"""Paths, limits, and user-facing messages."""

import os
from pathlib import Path

from platformdirs import user_data_dir

APP_NAME = "signalwatch"

# Local storage
DATA_DIR = Path(user_data_dir(APP_NAME))
DB_PATH = Path(os.environ.get("SIGNALWATCH_DB", DATA_DIR / "signalwatch.db"))

# Session
ACTOR_ENV_VAR = "SIGNALWATCH_ACTOR"

# Batches larger than this are rejected by the validator
MAX_BATCH_SIZE = 1000

# Store column default when a signal arrives without a confidence level
DEFAULT_CONFIDENCE = 50

# Messages returned to callers (never include store error text)
DUPLICATE_URL_REASON = "duplicate URL"
DUPLICATE_CVE_REASON = "duplicate CVE"
PERSISTENCE_ERROR_MESSAGE = "failed to import; check format and retry"
UNEXPECTED_ERROR_MESSAGE = "import failed due to an error; please retry"
SESSION_EXPIRED_MESSAGE = "Session expired. Please log in and try again."
AUTH_ERROR_MESSAGE = "Authentication error. Please log in again."
