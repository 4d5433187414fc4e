"""Centralized configuration constants.

All configurable values in one place for easy maintenance.
Security-sensitive settings can be overridden via environment variables.
"""

import os

# Base directories
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DATA_DIR = os.environ.get("DEVICEGATE_DATA_DIR", os.path.join(BASE_DIR, "data"))

# Directories
LOG_DIR = os.environ.get("LOG_DIR", "logs")
REPORT_DIR = os.environ.get("REPORT_DIR", "reports")
LOG_FILE = os.path.join(LOG_DIR, "devicegate.log")

# Every record written to the host store is prefixed with this namespace.
# wipe_all_data() removes everything under it.
STORAGE_NAMESPACE = os.environ.get("STORAGE_NAMESPACE", "burn_wizard_")

# Logical record names (before namespacing)
DEVICE_ID_KEY = "device_id"
SECURITY_STATE_KEY = "security_state"
PIN_HASH_KEY = "pin_hash"
PIN_SALT_KEY = "pin_salt"
AUDIT_LOG_KEY = "audit_log"
ENCRYPTED_KEY_PREFIX = "encrypted_"

# PIN policy
PIN_MIN_LENGTH = int(os.environ.get("PIN_MIN_LENGTH", "4"))
PIN_MAX_LENGTH = int(os.environ.get("PIN_MAX_LENGTH", "8"))
MAX_AUTH_ATTEMPTS = int(os.environ.get("MAX_AUTH_ATTEMPTS", "5"))
LOCKOUT_DURATION_SECONDS = int(os.environ.get("LOCKOUT_DURATION_SECONDS", "300"))  # 5 minutes
PIN_HASH_ITERATIONS = int(os.environ.get("PIN_HASH_ITERATIONS", "100000"))

# Random material sizes (bytes)
DEVICE_ID_BYTES = 16
PIN_SALT_BYTES = 16
SESSION_TOKEN_BYTES = 32

# Sessions
SESSION_TIMEOUT_SECONDS = int(os.environ.get("SESSION_TIMEOUT_SECONDS", "1800"))  # 30 minutes

# Audit trail
# The whole trail is rewritten as one blob on every append, so keep this bounded.
AUDIT_LOG_MAX_ENTRIES = int(os.environ.get("AUDIT_LOG_MAX_ENTRIES", "1000"))
AUDIT_DETAIL_MAX_CHARS = 1000

# Application log rotation (CLI only)
LOG_MAX_BYTES = int(os.environ.get("LOG_MAX_BYTES", 5 * 1024 * 1024))  # 5MB default
LOG_BACKUP_COUNT = int(os.environ.get("LOG_BACKUP_COUNT", 3))
