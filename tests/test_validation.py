"""Unit tests for request field checks, id parsing and password rules."""

import pytest
from bson import ObjectId

from common.utils import validate_password
from common.utils.exceptions import BadRequestException
from crm.database import to_object_id, optional_object_id
from crm.validation import (
    clean_optional,
    missing_fields,
    require_fields,
    validate_email,
    validate_slug,
)


class TestRequireFields:
    def test_lists_every_missing_field(self):
        body = {"organizationName": "Acme", "organizationSlug": " ", "ownerEmail": None}

        with pytest.raises(BadRequestException) as exc:
            require_fields(body, ["organizationName", "organizationSlug", "ownerFirstName", "ownerEmail"])

        assert exc.value.code == "MISSING_FIELDS"
        assert exc.value.detail["details"]["fields"] == ["organizationSlug", "ownerFirstName", "ownerEmail"]

    def test_passes_when_complete(self):
        require_fields({"email": "a@b.co", "role": "estimator"}, ["email", "role"])

    def test_missing_fields_empty(self):
        assert missing_fields({"a": 0, "b": False}, ["a", "b"]) == []


class TestEmail:
    @pytest.mark.parametrize("email,expected", [
        ("dana@acme.com", "dana@acme.com"),
        ("  Dana@Acme.COM ", "dana@acme.com"),
        ("a.b+c@sub.example.org", "a.b+c@sub.example.org"),
    ])
    def test_valid_normalized(self, email, expected):
        assert validate_email(email) == expected

    @pytest.mark.parametrize("email", ["", None, "dana", "dana@acme", "da na@acme.com", "@acme.com", "dana@@acme.com"])
    def test_invalid(self, email):
        with pytest.raises(BadRequestException) as exc:
            validate_email(email)
        assert exc.value.code == "INVALID_EMAIL"


class TestSlug:
    def test_valid(self):
        assert validate_slug(" acme-exteriors-2 ") == "acme-exteriors-2"

    @pytest.mark.parametrize("slug", ["Acme", "acme_exteriors", "acme exteriors", "a", "x" * 51])
    def test_invalid(self, slug):
        with pytest.raises(BadRequestException) as exc:
            validate_slug(slug)
        assert exc.value.code == "INVALID_SLUG"


class TestCleanOptional:
    def test_blank_becomes_none(self):
        assert clean_optional("   ") is None

    def test_trims(self):
        assert clean_optional(" Denver ") == "Denver"

    def test_non_strings_untouched(self):
        assert clean_optional(5) == 5


class TestObjectIds:
    def test_parses(self):
        oid = ObjectId()
        assert to_object_id(str(oid)) == oid
        assert to_object_id(oid) is oid

    @pytest.mark.parametrize("value", ["", None, "abc", 42])
    def test_rejects(self, value):
        with pytest.raises(BadRequestException) as exc:
            to_object_id(value, "contactId")
        assert exc.value.code == "INVALID_ID"

    def test_optional_passes_blank(self):
        assert optional_object_id("") is None
        assert optional_object_id(None) is None


class TestPasswordRules:
    def test_strong_password(self):
        is_valid, errors = validate_password("Shingles2026")
        assert is_valid
        assert errors == []

    def test_reports_each_problem(self):
        is_valid, errors = validate_password("short")
        assert not is_valid
        assert "Password must be at least 8 characters" in errors
        assert "Password must contain at least one uppercase letter" in errors
        assert "Password must contain at least one digit" in errors

    def test_common_password_rejected(self):
        is_valid, errors = validate_password("Password1")
        assert not is_valid
        assert "Password is too common" in errors
