"""
INPUT LENGTH LIMITS
===================
Reject oversized payloads.
"""

# FLOW:
# - Reject requests whose declared size exceeds max_bytes before parsing.
# - Reject bodies whose actual size exceeds the parser limit once read.
# WHY:
# - Mitigates large payload attacks and memory abuse.
# HOW:
# - Checks Content-Length header first, then the length of the bytes read.

from __future__ import annotations

from Security.error_handling import PayloadTooLarge, ValidationFailure


def make_size_guard(max_bytes: int):
    def size_guard(ctx) -> None:
        content_length = ctx.headers.get("content-length")
        if not content_length:
            return
        try:
            declared = int(content_length)
        except ValueError:
            raise ValidationFailure(
                [{"field": "content-length", "message": "Invalid Content-Length header", "value": content_length}]
            )
        if declared > max_bytes:
            raise PayloadTooLarge(max_bytes)

    return size_guard


def check_body_length(raw: bytes, max_bytes: int) -> None:
    if len(raw) > max_bytes:
        raise PayloadTooLarge(max_bytes)
