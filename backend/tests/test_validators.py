"""Join form validation tests."""

import pytest

from queueline.core.validators import (
    parse_party_size,
    validate_join_form,
    validate_name,
    validate_party_size,
    validate_phone,
)


class TestValidateName:
    def test_valid_name(self):
        result = validate_name("Alice")
        assert result.valid
        assert result.message == "Name is valid"

    @pytest.mark.parametrize("name", ["", "   ", None, 42])
    def test_missing_name(self, name):
        result = validate_name(name)
        assert not result.valid
        assert result.message == "Please enter your name"

    def test_thirty_characters_allowed(self):
        assert validate_name("a" * 30).valid

    def test_thirty_one_characters_rejected(self):
        result = validate_name("a" * 31)
        assert not result.valid
        assert result.message == "Name must not exceed 30 characters"

    def test_length_checked_after_trim(self):
        assert validate_name("  " + "a" * 30 + "  ").valid


class TestValidatePhone:
    def test_ten_digits(self):
        assert validate_phone("0123456789").valid

    @pytest.mark.parametrize("phone", ["", "  ", None])
    def test_missing_phone(self, phone):
        result = validate_phone(phone)
        assert result.message == "Please enter your phone number"

    @pytest.mark.parametrize("phone", ["012345678", "01234567890", "012 345 678"])
    def test_wrong_length(self, phone):
        result = validate_phone(phone)
        assert not result.valid
        assert result.message == "Phone number must be exactly 10 digits"

    @pytest.mark.parametrize("phone", ["012345678a", "012-345-67", "012345678 "])
    def test_non_digits(self, phone):
        result = validate_phone(phone)
        assert not result.valid
        assert result.message == "Phone number must contain only digits"

    def test_non_ascii_digits_rejected(self):
        assert not validate_phone("٠١٢٣٤٥٦٧٨٩").valid


class TestPartySize:
    @pytest.mark.parametrize("raw,expected", [
        (4, 4),
        ("4", 4),
        (" 7 ", 7),
        (3.0, 3),
        (2.5, None),
        ("abc", None),
        ("", None),
        (None, None),
        (True, None),
    ])
    def test_parse(self, raw, expected):
        assert parse_party_size(raw) == expected

    @pytest.mark.parametrize("size", [1, 20, "20"])
    def test_bounds_accepted(self, size):
        assert validate_party_size(size).valid

    @pytest.mark.parametrize("size", [0, -3, "abc", ""])
    def test_below_minimum(self, size):
        result = validate_party_size(size)
        assert not result.valid
        assert result.message == "Party size must be at least 1"

    def test_above_maximum(self):
        result = validate_party_size(21)
        assert not result.valid
        assert result.message == "Party size cannot exceed 20"


class TestValidateJoinForm:
    def test_all_valid(self):
        result = validate_join_form("Alice", "0123456789", 2)
        assert result.valid
        assert result.message == "All fields are valid"

    def test_name_reported_first(self):
        result = validate_join_form("", "123", 0)
        assert result.message == "Please enter your name"

    def test_phone_reported_before_party_size(self):
        result = validate_join_form("Alice", "123", 0)
        assert result.message == "Phone number must be exactly 10 digits"

    def test_party_size_reported_last(self):
        result = validate_join_form("Alice", "0123456789", 21)
        assert result.message == "Party size cannot exceed 20"
