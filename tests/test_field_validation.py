"""Unit tests for the user field rules."""

import pytest

from Security.error_handling import SuspiciousContent, ValidationFailure
from Security.field_validation import normalize_email, validate_user_id, validate_user_payload

VALID = {
    "name": "Dana Levi",
    "email": "dana@mail.com",
    "phone": "+972521234567",
    "address": "5 Ben Yehuda St.",
    "city": "Jerusalem",
    "country": "Israel",
}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("J.O.H.N+promo@GMAIL.com", "john@gmail.com"),
        ("john@googlemail.com", "john@gmail.com"),
        ("John+tag@outlook.com", "john@outlook.com"),
        ("john-tag@yahoo.com", "john@yahoo.com"),
        ("first.last@mail.com", "first.last@mail.com"),
    ],
)
def test_normalize_email(raw, expected):
    assert normalize_email(raw) == expected


def test_valid_payload_is_trimmed_and_collapsed():
    clean = validate_user_payload({**VALID, "name": "  Dana \t  Levi  ", "extra": "ignored"})

    assert clean["name"] == "Dana Levi"
    assert "extra" not in clean
    assert set(clean) == set(VALID)


def test_unicode_letters_are_accepted():
    clean = validate_user_payload({**VALID, "name": "דנה לוי", "city": "Zürich", "country": "مصر"})

    assert clean["name"] == "דנה לוי"


@pytest.mark.parametrize(
    "field, value",
    [
        ("name", "D"),
        ("name", "Dana 2"),
        ("name", "x" * 101),
        ("phone", "+97252123456"),
        ("phone", "+972421234567"),
        ("phone", "+9725212345678"),
        ("address", "abc"),
        ("address", "5 Main St #4"),
        ("city", "   "),
        ("email", "dana@"),
        ("email", 12345),
    ],
)
def test_invalid_field_is_reported(field, value):
    with pytest.raises(ValidationFailure) as exc_info:
        validate_user_payload({**VALID, field: value})

    details = exc_info.value.details
    assert [detail["field"] for detail in details] == [field]


def test_all_failures_are_collected():
    with pytest.raises(ValidationFailure) as exc_info:
        validate_user_payload({"name": "1", "phone": "nope"})

    fields = [detail["field"] for detail in exc_info.value.details]
    assert fields == ["name", "email", "phone", "address", "city", "country"]


def test_partial_payload_checks_only_given_fields():
    assert validate_user_payload({"city": " Haifa "}, partial=True) == {"city": "Haifa"}


def test_partial_payload_needs_a_known_field():
    with pytest.raises(ValidationFailure) as exc_info:
        validate_user_payload({"role": "admin"}, partial=True)

    assert exc_info.value.error == "No valid fields to update"


def test_script_idiom_is_suspicious():
    with pytest.raises(SuspiciousContent) as exc_info:
        validate_user_payload({**VALID, "address": "5 Main onclick=steal"})

    assert exc_info.value.to_dict() == {"error": "Suspicious content detected", "field": "address"}


def test_non_object_payload():
    with pytest.raises(ValidationFailure):
        validate_user_payload(["Dana"])


@pytest.mark.parametrize("raw, expected", [("1", 1), (" 42 ", 42), ("2147483647", 2147483647)])
def test_valid_ids(raw, expected):
    assert validate_user_id(raw) == expected


@pytest.mark.parametrize("raw", ["0", "-1", "1.5", "abc", "", "2147483648", "١٢", None])
def test_invalid_ids(raw):
    with pytest.raises(ValidationFailure) as exc_info:
        validate_user_id(raw)

    assert exc_info.value.details[0]["field"] == "id"
