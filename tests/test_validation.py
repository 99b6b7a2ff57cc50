"""Tests for accountable.validation."""

import pytest

from accountable.errors import ValidationError
from accountable.validation import (
    email,
    ensure_valid,
    iso_datetime,
    max_length,
    min_length,
    required,
    url,
    validate,
)


class TestRules:
    @pytest.mark.parametrize("value", ["", "   "])
    def test_required(self, value: str) -> None:
        assert required(value) == "This field is required"

    def test_lengths(self) -> None:
        assert max_length(3)("abcd") == "Must be at most 3 characters"
        assert max_length(3)("abc") is None
        assert min_length(6)("12345") == "Must be at least 6 characters"

    @pytest.mark.parametrize("value", ["ada@example.com", "a.b+c@sub.example.io"])
    def test_valid_email(self, value: str) -> None:
        assert email(value) is None

    @pytest.mark.parametrize("value", ["ada", "ada@", "@example.com", "ada@example"])
    def test_invalid_email(self, value: str) -> None:
        assert email(value) is not None

    def test_url(self) -> None:
        assert url("https://xyz.supabase.co") is None
        assert url("http://localhost:54321") is None
        assert url("xyz.supabase.co") is not None

    @pytest.mark.parametrize("value", ["2024-05-01T14:00", "2024-05-01 14:00:00+02:00"])
    def test_iso_datetime(self, value: str) -> None:
        assert iso_datetime(value) is None

    @pytest.mark.parametrize("value", ["2024-05-01", "2024-13-01T10:00", "noon"])
    def test_bad_iso_datetime(self, value: str) -> None:
        assert iso_datetime(value) is not None


class TestValidate:
    RULES = {"email": [required, email], "nickname": [max_length(5)]}

    def test_clean_data_is_stripped(self) -> None:
        result = validate({"email": " ada@example.com "}, self.RULES)
        assert result
        assert result.data == {"email": "ada@example.com", "nickname": ""}

    def test_required_short_circuits(self) -> None:
        result = validate({"email": ""}, self.RULES)
        assert not result.is_valid
        assert result.errors == {"email": ["This field is required"]}

    def test_optional_empty_field_skips_rules(self) -> None:
        assert validate({"email": "a@b.io", "nickname": None}, self.RULES)

    def test_ensure_valid_raises(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ensure_valid({"email": "nope", "nickname": "toolong"}, self.RULES)
        assert set(exc_info.value.errors) == {"email", "nickname"}
