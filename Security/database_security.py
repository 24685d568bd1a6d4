"""
DATABASE SECURITY
=================
Parameterized SQL helpers and the whitelisted partial-update builder.

FLOW:
- build_partial_update() turns a subset of user fields into one UPDATE.
- safe_execute() runs it with bound parameters.

WHY:
- Column names never come from the request; values never enter the SQL text.

HOW:
- Columns are emitted from the UPDATABLE_FIELDS whitelist, each mapped to a
  sequential bind slot (p1, p2, ...); the id filter takes the last slot.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Mapping

from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

UPDATABLE_FIELDS = ("name", "email", "phone", "address", "city", "country")


@dataclass(frozen=True)
class PartialUpdate:
    sql: str
    values: list[Any] = field(default_factory=list)

    @property
    def params(self) -> dict[str, Any]:
        return {f"p{position}": value for position, value in enumerate(self.values, start=1)}

    @property
    def timestamp_param(self) -> str:
        return f"p{len(self.values) - 1}"


def build_partial_update(
    table: str,
    changes: Mapping[str, Any],
    record_id: int,
    touched_at: datetime.datetime,
    whitelist: tuple[str, ...] = UPDATABLE_FIELDS,
) -> PartialUpdate | None:
    """Return the UPDATE for the whitelisted keys of changes, or None if there are none."""
    columns = [name for name in whitelist if name in changes]
    if not columns:
        return None

    values = [changes[name] for name in columns]
    assignments = [f"{name} = :p{position}" for position, name in enumerate(columns, start=1)]

    values.append(touched_at)
    assignments.append(f"updated_at = :p{len(values)}")

    values.append(record_id)
    sql = f"UPDATE {table} SET {', '.join(assignments)} WHERE id = :p{len(values)}"
    return PartialUpdate(sql, values)


def safe_execute(db: Session, query: str, params: dict, types: Mapping[str, Any] | None = None):
    """Execute a parameterized query safely across DB backends."""
    statement = text(query)
    if types:
        statement = statement.bindparams(*(bindparam(name, type_=type_) for name, type_ in types.items()))
    return db.execute(statement, params)
