"""Unit tests for the whitelisted partial-update builder."""

import datetime

from sqlalchemy import text

from app.database import SessionLocal
from app.models import User, utc_now
from Security.database_security import build_partial_update, safe_execute

TOUCHED = datetime.datetime(2026, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)


def test_statement_uses_whitelist_order_and_placeholders():
    update = build_partial_update("users", {"city": "Haifa", "name": "Dana Levi"}, 7, TOUCHED)

    assert update.sql == "UPDATE users SET name = :p1, city = :p2, updated_at = :p3 WHERE id = :p4"
    assert update.values == ["Dana Levi", "Haifa", TOUCHED, 7]
    assert update.params == {"p1": "Dana Levi", "p2": "Haifa", "p3": TOUCHED, "p4": 7}
    assert update.timestamp_param == "p3"


def test_unknown_keys_never_reach_the_statement():
    update = build_partial_update("users", {"email": "a@mail.com", "id = 1; --": "x", "role": "admin"}, 1, TOUCHED)

    assert update.sql == "UPDATE users SET email = :p1, updated_at = :p2 WHERE id = :p3"
    assert "role" not in update.sql


def test_no_whitelisted_keys_gives_none():
    assert build_partial_update("users", {"role": "admin"}, 1, TOUCHED) is None
    assert build_partial_update("users", {}, 1, TOUCHED) is None


def test_values_are_bound_not_interpolated(database):
    db = SessionLocal()
    try:
        now = utc_now()
        user = User(name="Dana Levi", email="dana@mail.com", phone="+972521234567",
                    address="5 Ben Yehuda St", city="Haifa", country="Israel",
                    created_at=now, updated_at=now)
        db.add(user)
        db.commit()

        hostile = "Haifa'; DROP TABLE users; --"
        update = build_partial_update("users", {"city": hostile}, user.id, TOUCHED)
        safe_execute(db, update.sql, update.params, types={update.timestamp_param: User.__table__.c.updated_at.type})
        db.commit()

        city = db.execute(text("SELECT city FROM users WHERE id = :id"), {"id": user.id}).scalar_one()
        assert city == hostile
    finally:
        db.close()
