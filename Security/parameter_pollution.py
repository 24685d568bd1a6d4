"""
HTTP PARAMETER POLLUTION
========================
Collapse repeated parameters into a single value.
"""

# FLOW:
# - Query strings and form bodies arrive as ordered (key, value) pairs.
# - collapse_pairs() keeps one value per key.
# WHY:
# - "?id=1&id=2" must not reach handlers as a list they did not expect.
# HOW:
# - Last occurrence wins, first-seen key order is kept.

from __future__ import annotations

from typing import Any, Iterable


def collapse_pairs(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    collapsed: dict[str, Any] = {}
    for key, value in pairs:
        collapsed[key] = value
    return collapsed


def collapse_lists(payload: dict[str, Any]) -> dict[str, Any]:
    """Top-level list values of a form payload collapse to their last item."""
    return {
        key: (value[-1] if isinstance(value, list) and value else value)
        for key, value in payload.items()
    }


def normalize_parameters(ctx) -> None:
    ctx.query = collapse_pairs(ctx.query_pairs)
    if ctx.body_is_form and isinstance(ctx.body, dict):
        ctx.body = collapse_lists(ctx.body)
