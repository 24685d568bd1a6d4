from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import dotenv
import os
dotenv.load_dotenv()

# Local default; docker-compose points this at PostgreSQL.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./users.db")


def is_memory_database(url):
    return url in ("sqlite://", "sqlite:///:memory:")


def build_engine(url):
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if is_memory_database(url):
            # One shared connection, or every session would see its own empty database.
            options["poolclass"] = StaticPool
        return create_engine(url, **options)
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    # Import registers the tables on Base.metadata.
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
