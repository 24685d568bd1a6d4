"""
HEADERS HARDENING
=================
Fixed security headers attached to every response.
"""

# FLOW:
# - First pipeline stage; fills the context's response headers.
# - The pipeline middleware applies them to success and error responses alike.
# WHY:
# - Reduces browser-based attack surface (sniffing, framing, script injection).
# HOW:
# - Sets nosniff/frame/referrer/permissions/CSP headers, drops server banners.

from __future__ import annotations

CSP_DIRECTIVES: dict[str, list[str]] = {
    "default-src": ["'self'"],
    "style-src": ["'self'", "'unsafe-inline'"],
    "script-src": ["'self'"],
    "img-src": ["'self'", "data:", "https:"],
    "connect-src": ["'self'"],
    "font-src": ["'self'"],
    "object-src": ["'none'"],
    "media-src": ["'self'"],
    "frame-src": ["'none'"],
}

REMOVED_HEADERS = ("X-Powered-By", "Server")


def build_csp(directives: dict[str, list[str]] = CSP_DIRECTIVES) -> str:
    return "; ".join(f"{name} {' '.join(sources)}" for name, sources in directives.items())


SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": build_csp(),
}


def harden_headers(ctx) -> None:
    ctx.response_headers.update(SECURITY_HEADERS)


def apply_response_headers(response, headers: dict[str, str]) -> None:
    for name in REMOVED_HEADERS:
        if name in response.headers:
            del response.headers[name]
    for name, value in headers.items():
        response.headers[name] = value
