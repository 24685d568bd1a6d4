"""
SECRETS REDACTION
=================
Mask credentials and contact details before they reach the logs.
"""

# FLOW:
# - ActivityLoggingMiddleware passes the raw query string through redact().
# WHY:
# - Query strings end up in rotated log files that outlive the request.
# HOW:
# - Values of sensitive keys are replaced with ***; other pairs are untouched.

from __future__ import annotations

import re

SENSITIVE_KEYS = ("password", "token", "key", "email", "phone")

_SENSITIVE_PAIR = re.compile(
    r"(%s)=([^&\s]+)" % "|".join(SENSITIVE_KEYS),
    re.IGNORECASE,
)


def redact(value: str) -> str:
    return _SENSITIVE_PAIR.sub(r"\1=***", value)
