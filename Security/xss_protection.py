"""
XSS PROTECTION
==============
Markup stripping for every string that arrives in a request.
"""

# FLOW:
# - sanitize_content() walks body/query/params and cleans each string leaf.
# WHY:
# - Stored markup would be replayed to whoever renders the record later.
# HOW:
# - Drops script-like elements with their content, then lets bleach strip
#   every remaining tag and attribute while keeping the text.

from __future__ import annotations

import re
from typing import Any

import bleach

# Elements whose body is code, not text; bleach alone would keep it.
_DROPPED_ELEMENTS = ("script", "style", "iframe", "object", "embed", "noscript", "template")
_DROPPED_CONTENT = re.compile(
    r"<\s*(%s)\b[^>]*>.*?<\s*/\s*\1\s*>" % "|".join(_DROPPED_ELEMENTS),
    re.IGNORECASE | re.DOTALL,
)


def strip_markup(value: str) -> str:
    value = _DROPPED_CONTENT.sub("", value)
    return bleach.clean(value, tags=set(), attributes={}, strip=True, strip_comments=True)


def sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return strip_markup(value)
    if isinstance(value, dict):
        return {key: sanitize_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    return value


def sanitize_content(ctx) -> None:
    ctx.body = sanitize_value(ctx.body)
    ctx.query = sanitize_value(ctx.query)
    ctx.params = sanitize_value(ctx.params)
