"""
REQUEST ID
==========
Attach a unique request id for traceability.
"""

# FLOW:
# - Middleware sets/echoes x-request-id for every request.
# WHY:
# - Helps correlate activity logs with client reports.
# HOW:
# - Adds a UUID per request and returns it in response headers.

from __future__ import annotations

import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware

_CLIENT_ID = re.compile(r"[A-Za-z0-9\-]{8,64}")


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        supplied = request.headers.get("x-request-id") or ""
        request_id = supplied if _CLIENT_ID.fullmatch(supplied) else str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response
