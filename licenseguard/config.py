"""
Configuration module for licenseguard.

Environment-variable defaults for the parts of verification that touch the
outside world. These are read once at import and never mutated; every check
also accepts its settings as explicit arguments.
"""

import os

# ============================================================
# Trusted Time
# ============================================================

# Any HTTPS endpoint that returns an accurate RFC 7231 Date header
TIME_URL = os.getenv("LICENSEGUARD_TIME_URL", "https://www.google.com")

# Seconds before the trusted time query is abandoned
TIME_TIMEOUT = float(os.getenv("LICENSEGUARD_TIME_TIMEOUT", "5"))

# Maximum drift between the local clock and trusted time
CLOCK_TOLERANCE_HOURS = float(os.getenv("LICENSEGUARD_CLOCK_TOLERANCE_HOURS", "24"))

# What to do when trusted time cannot be obtained: fail|pass
TIME_UNAVAILABLE = os.getenv("LICENSEGUARD_TIME_UNAVAILABLE", "fail").lower()


# ============================================================
# Logging
# ============================================================

LOG_LEVEL = os.getenv("LICENSEGUARD_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LICENSEGUARD_LOG_JSON", "1").lower() in ("1", "true", "yes")
