"""
NoSQL SECURITY
==============
Key sanitizing to prevent operator injection through request structure.

WHY:
- Prevents operator injection (e.g., {"$ne": ""}, {"a.b": 1}) where an
  attacker sends an object in place of an expected scalar.

HOW:
- Drops keys that start with '$' or contain '.', at any depth, and returns
  a new structure instead of mutating the request's own objects.
"""

from __future__ import annotations

from typing import Any

OPERATOR_SIGIL = "$"
PATH_SEPARATOR = "."


def is_unsafe_key(key: Any) -> bool:
    return isinstance(key, str) and (key.startswith(OPERATOR_SIGIL) or PATH_SEPARATOR in key)


def strip_mongo_operators(payload: Any) -> Any:
    """Remove operator-looking keys from dicts, recursing through lists."""
    if isinstance(payload, dict):
        return {
            key: strip_mongo_operators(value)
            for key, value in payload.items()
            if not is_unsafe_key(key)
        }
    if isinstance(payload, list):
        return [strip_mongo_operators(item) for item in payload]
    return payload


def sanitize_keys(ctx) -> None:
    ctx.body = strip_mongo_operators(ctx.body)
    ctx.query = strip_mongo_operators(ctx.query)
    ctx.params = strip_mongo_operators(ctx.params)
