"""Shared constants for record types, hook files and session lifetimes."""

SESSION_RECORD_TYPE = "Session"
PROMPT_RECORD_TYPE = "Prompt"

# Hook scripts write vibestatus-<session_id>.json and vibestatus-prompt-<session_id>.json
DEFAULT_STATUS_DIR = "/tmp"
STATUS_FILE_PREFIX = "vibestatus-"
PROMPT_FILE_PREFIX = "vibestatus-prompt-"
RESPONSE_FILE_PREFIX = "vibestatus-response-"
STATUS_FILE_EXTENSION = ".json"
RESPONSE_FILE_EXTENSION = ".txt"

UNKNOWN_PROJECT = "Unknown"

# Remote sessions older than this are not returned by fetches (30 minutes)
SESSION_EXPIRATION_SECONDS = 30 * 60

# Local status files older than this are removed (2 hours)
SESSION_TIMEOUT_SECONDS = 7200

# Below this age a dead pid is not trusted; the hook's parent may be a short-lived shell
PID_CHECK_MIN_AGE_SECONDS = 60

# Environment variable names
ENV_BUCKET = "VIBESTATUS_BUCKET"
ENV_KEY_PREFIX = "VIBESTATUS_KEY_PREFIX"
ENV_FERNET_KEY = "VIBESTATUS_FERNET_KEY"
ENV_STATUS_DIR = "VIBESTATUS_STATUS_DIR"
ENV_DEVICE_NAME = "VIBESTATUS_DEVICE_NAME"
