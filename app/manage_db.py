"""
Create the users table and optionally seed it with generated users.
Usage: python -m app.manage_db [--seed N]
"""
import argparse
import random

from sqlalchemy.exc import IntegrityError

from .database import SessionLocal, init_db
from .models import User

FIRST_NAMES = ("Noa", "Daniel", "Maya", "Yosef", "Tamar", "Ariel", "Lior", "Shira", "Omer", "Dana")
LAST_NAMES = ("Cohen", "Levi", "Mizrahi", "Peretz", "Biton", "Friedman", "Azulay", "Katz")
STREETS = ("Herzl", "Rothschild", "Ben Yehuda", "Dizengoff", "Allenby", "Jabotinsky")
CITIES = ("Tel Aviv", "Jerusalem", "Haifa", "Beersheba", "Netanya", "Eilat")
MAIL_DOMAINS = ("mail.com", "inbox.com", "post.co.il")


def generate_phone(rng):
    return "+9725" + "".join(rng.choice("0123456789") for _ in range(8))


def generate_user(rng, index):
    first = rng.choice(FIRST_NAMES)
    last = rng.choice(LAST_NAMES)
    return {
        "name": f"{first} {last}",
        "email": f"{first.lower()}.{last.lower()}{index}@{rng.choice(MAIL_DOMAINS)}",
        "phone": generate_phone(rng),
        "address": f"{rng.randint(1, 250)} {rng.choice(STREETS)} Street",
        "city": rng.choice(CITIES),
        "country": "Israel",
    }


def seed_users(count, session_factory=SessionLocal, rng=None):
    rng = rng or random.Random()
    db = session_factory()
    created = 0
    try:
        for index in range(count):
            db.add(User(**generate_user(rng, index)))
            try:
                db.commit()
                created += 1
            except IntegrityError:
                db.rollback()
    finally:
        db.close()
    return created


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed", type=int, default=0, metavar="N", help="insert N generated users")
    args = parser.parse_args(argv)

    print("Creating tables (if missing)...")
    init_db()
    if args.seed > 0:
        print(f"Inserting {args.seed} users...")
        created = seed_users(args.seed)
        print(f"Seeding complete: {created} users created.")
    print("All DB management tasks complete.")


if __name__ == "__main__":
    main()
