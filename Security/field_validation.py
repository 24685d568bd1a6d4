"""
INPUT VALIDATION & SANITIZATION
===============================
Field rules for the user resource.
"""

# FLOW:
# - validate_user_payload() runs every rule and collects all failures.
# - validate_user_id() checks the path id before any store access.
# WHY:
# - Handlers only ever see trimmed, well-formed, normalized values.
# HOW:
# - trim -> charset/format -> length -> collapse whitespace -> normalize,
#   plus one cross-field scan for script idioms.

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from email_validator import EmailNotValidError, validate_email

from Security.error_handling import SuspiciousContent, ValidationFailure

MAX_DB_INT = 2_147_483_647

# Latin (with accented ranges), Hebrew and Arabic letters.
LETTERS = r"A-Za-z\u00C0-\u00D6\u00D8-\u00F6\u00F8-\u024F\u0590-\u05FF\u0600-\u06FF"
TEXT_PATTERN = re.compile(rf"[{LETTERS}\s.,\-]+")
ADDRESS_PATTERN = re.compile(rf"[{LETTERS}0-9\s.,\-]+")
PHONE_PATTERN = re.compile(r"\+9725[0-9]{8}")
ID_PATTERN = re.compile(r"[0-9]+")
_WHITESPACE_RUN = re.compile(r"\s+")

SCRIPT_IDIOMS = [
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"<\s*iframe", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"vbscript\s*:", re.IGNORECASE),
    re.compile(r"data\s*:\s*text/html", re.IGNORECASE),
    re.compile(r"\bon[a-z]+\s*=", re.IGNORECASE),
    re.compile(r"\beval\s*\(", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
]

# Providers whose mailboxes ignore sub-addressing, and the separator they use.
_PLUS_PROVIDERS = {"outlook.com", "hotmail.com", "live.com", "icloud.com", "me.com"}
_DASH_PROVIDERS = {"yahoo.com", "ymail.com", "rocketmail.com"}
_GMAIL_DOMAINS = {"gmail.com", "googlemail.com"}


def normalize_email(value: str) -> str:
    """Lowercase and fold provider-specific aliases onto one mailbox."""
    local, _, domain = value.lower().rpartition("@")
    if domain in _GMAIL_DOMAINS:
        local = local.split("+", 1)[0].replace(".", "")
        domain = "gmail.com"
    elif domain in _PLUS_PROVIDERS:
        local = local.split("+", 1)[0]
    elif domain in _DASH_PROVIDERS:
        local = local.split("-", 1)[0]
    return f"{local}@{domain}"


def _is_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


@dataclass(frozen=True)
class FieldRule:
    name: str
    message: str
    min_len: int
    max_len: int
    pattern: re.Pattern | None = None
    check: Callable[[str], bool] | None = None
    normalizer: Callable[[str], str] | None = None

    def matches(self, value: str) -> bool:
        if self.pattern is not None and not self.pattern.fullmatch(value):
            return False
        if self.check is not None and not self.check(value):
            return False
        return True

    def apply(self, raw: Any) -> tuple[str | None, str | None]:
        """Return (clean value, None) or (None, error message)."""
        if not isinstance(raw, str):
            return None, f"{self.name.capitalize()} must be a string"
        value = raw.strip()
        if not value:
            return None, f"{self.name.capitalize()} is required"
        if not self.matches(value):
            return None, self.message
        if not self.min_len <= len(value) <= self.max_len:
            return None, self.message
        value = _WHITESPACE_RUN.sub(" ", value)
        if self.normalizer is not None:
            value = self.normalizer(value)
        return value, None


USER_RULES: tuple[FieldRule, ...] = (
    FieldRule("name", "Name must be between 2 and 100 characters and contain only letters, spaces, . , -",
              2, 100, pattern=TEXT_PATTERN),
    FieldRule("email", "Must be a valid email", 3, 254, check=_is_email, normalizer=normalize_email),
    FieldRule("phone", "Must be a valid Israeli phone number (+9725xxxxxxxx)", 13, 13, pattern=PHONE_PATTERN),
    FieldRule("address", "Address must be between 5 and 255 characters and contain only letters, digits, spaces, . , -",
              5, 255, pattern=ADDRESS_PATTERN),
    FieldRule("city", "City must be between 2 and 100 characters and contain only letters, spaces, . , -",
              2, 100, pattern=TEXT_PATTERN),
    FieldRule("country", "Country must be between 2 and 100 characters and contain only letters, spaces, . , -",
              2, 100, pattern=TEXT_PATTERN),
)

USER_FIELDS = tuple(rule.name for rule in USER_RULES)


def find_script_idiom(values: dict[str, Any]) -> str | None:
    """Scan all provided values together; name the field that carries the hit."""
    provided = {k: v for k, v in values.items() if isinstance(v, str)}
    combined = " ".join(provided.values())
    if not any(p.search(combined) for p in SCRIPT_IDIOMS):
        return None
    for field, value in provided.items():
        if any(p.search(value) for p in SCRIPT_IDIOMS):
            return field
    return "*"


def validate_user_payload(payload: Any, partial: bool = False) -> dict[str, str]:
    if not isinstance(payload, dict):
        if partial:
            raise ValidationFailure(error="No valid fields to update", message="Request body must be a JSON object")
        raise ValidationFailure([{"field": "body", "message": "Request body must be a JSON object", "value": None}])

    supplied = {rule.name: payload[rule.name] for rule in USER_RULES if rule.name in payload}
    if partial and not supplied:
        raise ValidationFailure(
            error="No valid fields to update",
            message=f"Provide at least one of: {', '.join(USER_FIELDS)}",
        )

    field = find_script_idiom(supplied)
    if field is not None:
        raise SuspiciousContent(field, error="Suspicious content detected")

    clean: dict[str, str] = {}
    details: list[dict[str, Any]] = []
    for rule in USER_RULES:
        if rule.name not in supplied:
            if not partial:
                details.append({"field": rule.name, "message": f"{rule.name.capitalize()} is required", "value": None})
            continue
        value, error = rule.apply(supplied[rule.name])
        if error:
            details.append({"field": rule.name, "message": error, "value": supplied[rule.name]})
        else:
            clean[rule.name] = value

    if details:
        raise ValidationFailure(details)
    return clean


def validate_user_id(raw: Any) -> int:
    value = raw.strip() if isinstance(raw, str) else raw
    if isinstance(value, str) and ID_PATTERN.fullmatch(value):
        number = int(value)
        if 0 < number <= MAX_DB_INT:
            return number
    raise ValidationFailure([{"field": "id", "message": "ID must be a positive integer", "value": raw}])
