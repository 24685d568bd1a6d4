"""
SQL INJECTION PREVENTION
========================
Pattern-based rejection of request values that look like SQL.
Every statement the app runs is parameterized; this layer sits in front
of that.

FLOW:
- find_injection() walks a structure and returns the dotted path of the
  first string leaf matching a suspicious pattern.
- detect_injection() checks body, then query, then params.

WHY:
- Rejects obvious probing before it reaches the store or the logs.

HOW:
- Fixed ordered regex list. Ordinary prose that contains a keyword such as
  "select" or a quote is rejected too; that false positive is accepted.
"""

from __future__ import annotations

import re
from typing import Any

from Security.error_handling import SuspiciousContent

SQL_PATTERNS = [
    re.compile(r"\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|UNION|SCRIPT)\b", re.IGNORECASE),
    re.compile(r"(;|--|/\*|\*/)"),
    re.compile(r"\b(OR|AND)\b.*=.*", re.IGNORECASE),
    re.compile(r"(1=1|1=0)"),
    re.compile(r"('|''|\"|\"\")"),
]


def looks_like_sql(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return any(pattern.search(value) for pattern in SQL_PATTERNS)


def _join(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


def find_injection(value: Any, path: str = "") -> str | None:
    if isinstance(value, str):
        return path if looks_like_sql(value) else None
    if isinstance(value, dict):
        items = value.items()
    elif isinstance(value, list):
        items = enumerate(value)
    else:
        return None
    for key, item in items:
        hit = find_injection(item, _join(path, key))
        if hit is not None:
            return hit
    return None


def detect_injection(ctx) -> None:
    for source in (ctx.body, ctx.query, ctx.params):
        field = find_injection(source)
        if field is not None:
            raise SuspiciousContent(field)
