"""
SECURITY CONFIG
===============
Centralized security settings loaded from environment.
"""

# FLOW:
# - Read env vars once and expose SECURITY_SETTINGS.
# WHY:
# - Centralizes security tuning per environment.
# HOW:
# - Reads env vars and stores them in a dict.

from __future__ import annotations

import logging
import os

import dotenv


def get_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


def get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def get_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_path() -> str:
    root = os.path.dirname(os.path.dirname(__file__))
    return os.path.join(root, ".env")


dotenv.load_dotenv(_env_path())

if get_bool("APP_ENV_LOG", False):
    logging.getLogger("security.env").info("Active env file: %s", _env_path())


def load_settings() -> dict:
    """Build a fresh settings dict from the current environment."""
    return {
        "APP_ENV": os.getenv("APP_ENV", "production").strip().lower(),
        "MAX_BODY_BYTES": get_int("MAX_BODY_BYTES", 10 * 1024 * 1024),
        "MAX_JSON_BYTES": get_int("MAX_JSON_BYTES", 10 * 1024),
        "GENERAL_RATE_LIMIT": get_int("GENERAL_RATE_LIMIT", 100),
        "GENERAL_RATE_WINDOW": get_int("GENERAL_RATE_WINDOW", 15 * 60),
        "API_RATE_LIMIT": get_int("API_RATE_LIMIT", 1000),
        "API_RATE_WINDOW": get_int("API_RATE_WINDOW", 60 * 60),
        "SENSITIVE_RATE_LIMIT": get_int("SENSITIVE_RATE_LIMIT", 5),
        "SENSITIVE_RATE_WINDOW": get_int("SENSITIVE_RATE_WINDOW", 15 * 60),
        "TRUST_PROXY": get_bool("TRUST_PROXY", False),
        "CORS_ORIGINS": get_list("CORS_ORIGINS", ["http://localhost:3000"]),
        "ACTIVITY_LOG_ENABLED": get_bool("ACTIVITY_LOG_ENABLED", True),
        "ACTIVITY_LOG_FILE": os.getenv("ACTIVITY_LOG_FILE", "logs/security.log"),
    }


SECURITY_SETTINGS = load_settings()


def is_development(settings: dict | None = None) -> bool:
    env = (settings or SECURITY_SETTINGS).get("APP_ENV", "")
    return env in {"dev", "development", "local", "localhost"}
