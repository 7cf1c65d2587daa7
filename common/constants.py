"""
Application-wide constants for the SafeWords core.

This module contains all shared constants used across the application.
"""

import os

# ========= Service Configuration =========
# Service configuration: service_name -> (module_path, port)
SERVICES = {
    "safewords": ("services.safewords.main", 20010),
}

# ========= Storage Keys =========
# Conceptual key/value layout, values are JSON-serialized
ACCESS_CODE_KEY = "accessCode"
USER_CONTACTS_KEY = "userContacts"
TRUSTED_CONTACTS_KEY = "trustedContacts"
ALERTS_KEY = "alerts"

# Optional namespace prepended to every key when stored in Redis
STORAGE_KEY_PREFIX = os.getenv("SAFEWORDS_KEY_PREFIX", "safewords:")

# Alert entries kept in memory while storage is failing
ALERT_FALLBACK_LIMIT = 500

# ========= Access Gate =========
DEFAULT_ACCESS_CODE = "1234"
ACCESS_CODE_LENGTH = 4

# ========= Predefined Emergency Numbers =========
# Always verified, never stored unless the user toggles them on
PREDEFINED_CONTACTS = [
    {"name": "🚑 Ambulance", "number": "104"},
    {"name": "🚓 Police", "number": "107"},
    {"name": "🌐 English Help", "number": "112"},
]

# ========= Verification =========
VERIFICATION_CODE_MIN = 100000
VERIFICATION_CODE_MAX = 999999

# ========= Panic / Tracking =========
# Hold duration before the alert fires (milliseconds)
PANIC_COUNTDOWN_MS = 3000

# Tracking cadence: whichever triggers first
TRACKING_INTERVAL_MS = 10000
TRACKING_MIN_DISTANCE_M = 10

# How long a permission request waits for the device to answer (seconds)
PERMISSION_REQUEST_TIMEOUT = 30

# ========= Dispatch =========
APP_SIGNATURE = "Sent via SafeWords App"

# ========= Redis Configuration =========
# Redis connection settings
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
# Note: REDIS_PASSWORD should be read from env in redis_client, not here (security)
