"""
ACTIVITY TRACKING
=================
Structured request logging for monitoring.

FLOW:
- Middleware logs each request with its outcome and timing.
- Added to the FastAPI middleware stack in app/main.py.

WHY:
- Provides traceability for security audits and incident response.

HOW:
- Writes structured request logs to the configured rotating log file.
"""

from __future__ import annotations

import logging
import os
import time
from logging.handlers import RotatingFileHandler

from starlette.middleware.base import BaseHTTPMiddleware

from Security.secrets_redaction import redact


def _get_logger(log_file: str | None) -> logging.Logger:
    logger = logging.getLogger("security.activity")
    if logger.handlers or not log_file:
        return logger

    directory = os.path.dirname(log_file)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    handler.setFormatter(formatter)

    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger


class ActivityLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, log_file: str | None = None):
        super().__init__(app)
        self.logger = _get_logger(log_file)

    async def dispatch(self, request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        request_id = getattr(request.state, "request_id", None)
        query = request.url.query
        if query:
            query = redact(query)
        self.logger.info(
            "method=%s path=%s query=%s status=%s duration_ms=%.1f request_id=%s ip=%s",
            request.method,
            request.url.path,
            query or "",
            response.status_code,
            (time.perf_counter() - started) * 1000,
            request_id or "",
            request.client.host if request.client else "unknown",
        )
        return response
