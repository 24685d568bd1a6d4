"""
ERROR HANDLING SECURITY
=======================
Error taxonomy for the request pipeline and handlers, and the exception
handlers that turn it into JSON responses without leaking internals.
"""

# FLOW:
# - Pipeline stages and route handlers raise one of the ApiError subclasses.
# - register_error_handlers() maps them (and anything unexpected) to JSON.
# WHY:
# - Avoids leaking stack traces, file paths and driver error codes.
# HOW:
# - Every ApiError carries its own status and body; the rest becomes a 500.

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from Security.security_config import SECURITY_SETTINGS, is_development

logger = logging.getLogger("security.errors")


class ApiError(Exception):
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None):
        super().__init__(message or self.error)
        self.message = message
        self.headers = headers or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        if self.message:
            body["message"] = self.message
        return body


class ValidationFailure(ApiError):
    status_code = 400
    error = "Validation Error"

    def __init__(self, details: list[dict[str, Any]] | None = None, error: str | None = None,
                 message: str | None = None):
        super().__init__(message)
        self.details = details or []
        if error:
            self.error = error

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.details:
            body["details"] = self.details
        return body


class NotFound(ApiError):
    status_code = 404
    error = "User not found"

    def __init__(self, resource: str, record_id: Any):
        super().__init__(f"No {resource} found with ID: {record_id}")
        self.error = f"{resource.capitalize()} not found"
        self.resource = resource
        self.record_id = record_id


class Conflict(ApiError):
    status_code = 409
    error = "Email already exists"


class QuotaExceeded(ApiError):
    status_code = 429
    error = "Too Many Requests"

    def __init__(self, limiter: str, limit: int, reset_at: int, message: str,
                 headers: dict[str, str] | None = None):
        super().__init__(f"Rate limit exceeded: {message}", headers=headers)
        self.limiter = limiter
        self.limit = limit
        self.reset_at = reset_at

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body.update({"limiter": self.limiter, "limit": self.limit, "remaining": 0, "reset": self.reset_at})
        return body


class PayloadTooLarge(ApiError):
    status_code = 413
    error = "Request entity too large"

    def __init__(self, max_bytes: int):
        super().__init__()
        self.max_bytes = max_bytes

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "maxSize": _human_size(self.max_bytes)}


class SuspiciousContent(ApiError):
    status_code = 400
    error = "Potential SQL injection detected"

    def __init__(self, field: str | None, error: str | None = None):
        super().__init__()
        self.field = field
        if error:
            self.error = error

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "field": self.field}


class InternalFailure(ApiError):
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, detail: str | None = None):
        super().__init__("Something went wrong")
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.detail:
            body["message"] = self.detail
        return body


def _human_size(num_bytes: int) -> str:
    if num_bytes >= 1024 * 1024 and num_bytes % (1024 * 1024) == 0:
        return f"{num_bytes // (1024 * 1024)}MB"
    if num_bytes >= 1024 and num_bytes % 1024 == 0:
        return f"{num_bytes // 1024}KB"
    return f"{num_bytes}B"


def error_response(exc: ApiError, extra_headers: dict[str, str] | None = None) -> JSONResponse:
    headers = dict(extra_headers or {})
    headers.update(exc.headers)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)


def _not_found(request: Request) -> JSONResponse:
    return JSONResponse(
        {"error": "Not Found", "message": f"Cannot {request.method} {request.url.path}"},
        status_code=404,
    )


def _validation_details(exc: RequestValidationError) -> list[dict[str, Any]]:
    details = []
    for error in exc.errors() or []:
        field = ".".join(str(x) for x in error.get("loc", []) if x not in ("body", "path", "query"))
        details.append({"field": field, "message": error.get("msg") or "Invalid input", "value": error.get("input")})
    return details


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error("Request failed: %s %s: %s", request.method, request.url.path, exc)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(ValidationFailure(_validation_details(exc)))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return _not_found(request)
        if exc.status_code >= 500:
            return error_response(InternalFailure())
        return JSONResponse({"error": "Request failed"}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled error: method=%s path=%s ip=%s",
            request.method,
            request.url.path,
            request.client.host if request.client else "unknown",
        )
        return error_response(internal_failure_for(exc))


def internal_failure_for(exc: Exception) -> InternalFailure:
    """Wrap an unexpected exception; its text is only exposed in development."""
    detail = f"{exc.__class__.__name__}: {exc}" if is_development(SECURITY_SETTINGS) else None
    return InternalFailure(detail)
