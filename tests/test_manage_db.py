import random

from app.database import SessionLocal
from app.manage_db import generate_user, seed_users
from app.models import User
from Security.field_validation import validate_user_payload


def test_generated_users_pass_field_rules():
    rng = random.Random(7)

    for index in range(20):
        user = generate_user(rng, index)
        assert validate_user_payload(user) == user


def test_seed_inserts_requested_count(database):
    created = seed_users(5, session_factory=SessionLocal, rng=random.Random(1))

    db = SessionLocal()
    try:
        assert created == 5
        assert db.query(User).count() == 5
    finally:
        db.close()
