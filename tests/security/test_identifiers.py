# tests/security/test_identifiers.py
import pytest

from hospital_api.db.models import new_object_id
from hospital_api.security.identifiers import sanitize_object_id

VALID_ID = "507f1f77bcf86cd799439011"


def test_valid_id_passes_through_unchanged():
    assert sanitize_object_id(VALID_ID) == VALID_ID


def test_uppercase_hex_is_accepted():
    assert sanitize_object_id(VALID_ID.upper()) == VALID_ID.upper()


def test_generated_ids_are_accepted():
    object_id = new_object_id()
    assert sanitize_object_id(object_id) == object_id


def test_non_hex_characters_are_stripped():
    """Separators and braces are removed; 24 hex digits remain."""
    assert sanitize_object_id("{507f1f77-bcf86cd7-99439011}") == VALID_ID


def test_operator_payload_reduces_to_invalid():
    # "$ne" contributes an "e", leaving too few characters for an id
    assert sanitize_object_id('{"$ne": null}') is None


@pytest.mark.parametrize(
    "value",
    [
        "",
        "507f1f77bcf86cd79943901",  # 23 chars
        "507f1f77bcf86cd7994390112",  # 25 chars
        "zzzzzzzzzzzzzzzzzzzzzzzz",
        "../../etc/passwd",
    ],
)
def test_wrong_length_after_stripping_is_rejected(value):
    assert sanitize_object_id(value) is None


@pytest.mark.parametrize("value", [None, 12345, ["507f1f77bcf86cd799439011"], {"$gt": ""}])
def test_non_string_input_is_rejected(value):
    assert sanitize_object_id(value) is None


def test_result_is_always_24_hex_or_none():
    for raw in [VALID_ID, "x" + VALID_ID + "y", VALID_ID + "0", "not-an-id"]:
        result = sanitize_object_id(raw)
        assert result is None or (len(result) == 24 and int(result, 16) >= 0)


@pytest.mark.parametrize(
    "raw",
    [
        VALID_ID,
        "{507f1f77-bcf86cd7-99439011}",
        " 507f 1f77 bcf8 6cd7 9943 9011 ",
        "507f1f77bcf86cd7994390110",
        '{"$ne": null}',
        "",
    ],
)
def test_sanitizing_twice_changes_nothing(raw):
    once = sanitize_object_id(raw)
    assert sanitize_object_id(once) == once
