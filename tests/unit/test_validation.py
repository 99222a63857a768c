"""Unit tests for form field validators and the amount parser."""

from decimal import Decimal

import pytest

from bank_service.domain.exceptions import InvalidAmountFormatError
from bank_service.domain.validation import (
    NEW_USER_FIELD_VALIDATORS,
    NEW_USER_FIELDS,
    parse_account_id,
    parse_amount,
    validate_address,
    validate_city,
    validate_name,
    validate_password,
    validate_state_country,
    validate_username,
)


class TestParseAmount:
    """Tests for the strict two-decimal amount format."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("0.01", Decimal("0.01")),
            ("12.34", Decimal("12.34")),
            ("100.00", Decimal("100.00")),
            ("007.50", Decimal("7.50")),
        ],
    )
    def test_accepts_digits_point_two_digits(self, raw: str, expected: Decimal) -> None:
        assert parse_amount(raw) == expected

    def test_zero_parses(self) -> None:
        """Zero is well-formed; positivity is checked by the caller."""
        assert parse_amount("0.00") == Decimal("0.00")

    @pytest.mark.parametrize(
        "raw",
        ["1.5", "1", "1.", ".50", "1.234", "-1.00", "+1.00", "1e2", " 1.00", "1.00 ", "1,00", "abc", "", "١.٠٠"],
    )
    def test_rejects_malformed_strings(self, raw: str) -> None:
        with pytest.raises(InvalidAmountFormatError):
            parse_amount(raw)

    @pytest.mark.parametrize("raw", [None, 1, 1.5, Decimal("1.00")])
    def test_rejects_non_strings(self, raw: object) -> None:
        with pytest.raises(InvalidAmountFormatError):
            parse_amount(raw)

    def test_error_keeps_raw_value(self) -> None:
        with pytest.raises(InvalidAmountFormatError) as exc_info:
            parse_amount("1.5")
        assert exc_info.value.raw == "1.5"


class TestParseAccountId:
    @pytest.mark.parametrize(("raw", "expected"), [("42", 42), ("0", 0), (7, 7), ("9223372036854775807", 2**63 - 1)])
    def test_accepts_ids_that_fit_bigint(self, raw: object, expected: int) -> None:
        assert parse_account_id(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["", "abc", "-1", " 1", "1.0", "١٢", "9223372036854775808", "9" * 5000, 2**63, -1, True, None, 1.0],
    )
    def test_rejects_everything_else(self, raw: object) -> None:
        assert parse_account_id(raw) is None


class TestUsername:
    def test_alphanumeric_is_valid(self) -> None:
        assert validate_username("alice42").ok

    def test_uppercase_is_accepted(self) -> None:
        assert validate_username("Alice").ok

    @pytest.mark.parametrize("value", ["", "a" * 36, "alice!", "al ice", "alice_1"])
    def test_invalid_usernames(self, value: str) -> None:
        result = validate_username(value)
        assert not result.ok
        assert "alphanumeric" in result.reason

    def test_non_string(self) -> None:
        assert validate_username(None).reason == "Username must be a string of characters"


class TestPassword:
    def test_strong_password_is_valid(self) -> None:
        assert validate_password("Correct-Horse9").ok

    def test_reports_every_problem(self) -> None:
        result = validate_password("aaa")
        assert not result.ok
        problems = result.reason.split(";")
        assert "Must contain at least one special character" in problems
        assert "Must contain at least one uppercase letter" in problems
        assert "Must contain at least one digit" in problems
        assert "Must not contain 3 identical characters in a row" in problems
        assert any(p.startswith("Must be at least 10 characters") for p in problems)

    def test_too_long(self) -> None:
        result = validate_password("Ab1!" + "xy" * 70)
        assert not result.ok
        assert "no longer than 128 characters" in result.reason

    def test_repeated_characters(self) -> None:
        result = validate_password("Abccc-1234")
        assert result.reason == "Must not contain 3 identical characters in a row"


class TestProfileFields:
    @pytest.mark.parametrize("value", ["Alice", "O'Brien", "Smith-Jones"])
    def test_valid_names(self, value: str) -> None:
        assert validate_name(value).ok

    def test_name_with_consecutive_hyphens(self) -> None:
        assert validate_name("Smith--Jones").reason == 'Name cannot contain consecutive "-"'

    @pytest.mark.parametrize("value", ["", "Al1ce", "Alice Smith", "x" * 51])
    def test_invalid_names(self, value: str) -> None:
        assert not validate_name(value).ok

    def test_address(self) -> None:
        assert validate_address("12 Main St.").ok
        assert not validate_address("12 Main St, Apt 4").ok

    def test_city(self) -> None:
        assert validate_city("St. John's").ok
        assert validate_city("Winston-Salem").ok
        assert not validate_city("Winston--Salem").ok
        assert not validate_city("City 17").ok

    def test_state_country(self) -> None:
        assert validate_state_country("New York").ok
        assert not validate_state_country("X").ok
        assert not validate_state_country("N.Y.").ok


class TestRegistrationFields:
    def test_every_field_has_a_validator(self) -> None:
        assert set(NEW_USER_FIELDS) == set(NEW_USER_FIELD_VALIDATORS)

    def test_validator_table_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            NEW_USER_FIELD_VALIDATORS["username"] = validate_name  # type: ignore[index]
