"""Shared constants for flowrunner."""

from __future__ import annotations

MS_PER_UNIT = {
    "seconds": 1000,
    "minutes": 60_000,
    "hours": 3_600_000,
    "days": 86_400_000,
}

DEFAULT_DELAY_UNIT = "seconds"
MAX_DELAY_MS = 30 * MS_PER_UNIT["days"]

DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_HTTP_METHOD = "POST"
HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")
BODY_METHODS = ("POST", "PUT", "PATCH")

RESEND_API_URL = "https://api.resend.com/emails"

CONDITIONAL_STEP_TYPE = "conditional"
