"""Shape checks for user-supplied form values.

Every validator takes the raw value and returns a ``ValidationResult``; the
amount parser is the exception and returns the parsed ``Decimal`` directly,
raising ``InvalidAmountFormatError`` on bad input.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType

from bank_service.domain.exceptions import InvalidAmountFormatError


AMOUNT_PATTERN = re.compile(r"^[0-9]+\.[0-9]{2}$")
USERNAME_PATTERN = re.compile(r"^[a-z0-9]{1,35}$", re.IGNORECASE)
ADDRESS_PATTERN = re.compile(r"^[0-9a-z. ]{1,100}$", re.IGNORECASE)
NAME_PATTERN = re.compile(r"^[a-zA-Z'-]{1,50}$")
CITY_PATTERN = re.compile(r"^[a-zA-Z',.\- ]{1,60}$")
STATE_COUNTRY_PATTERN = re.compile(r"^[a-zA-Z ]{2,55}$")
REPEATED_CHAR_PATTERN = re.compile(r"(.)\1\1")

# https://owasp.org/www-community/password-special-characters
PASSWORD_SPECIAL_CHARS = frozenset(" !\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~")
PASSWORD_MIN_LENGTH = 10
PASSWORD_MAX_LENGTH = 128

ACCOUNT_ID_MAX = 2**63 - 1
ACCOUNT_ID_MAX_DIGITS = len(str(ACCOUNT_ID_MAX))


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: str = ""


VALID = ValidationResult(ok=True)


def parse_amount(raw: object) -> Decimal:
    """Parse a monetary amount such as ``"12.34"``.

    Only one or more digits, a decimal point and exactly two digits are
    accepted. ``"0.00"`` parses; deciding whether zero is allowed is left to
    the caller.
    """
    if not isinstance(raw, str) or not AMOUNT_PATTERN.fullmatch(raw):
        raise InvalidAmountFormatError(raw)
    return Decimal(raw)


def parse_account_id(raw: object) -> int | None:
    """Parse an account id from a form value or path segment.

    Returns None unless ``raw`` is an int or a string of ASCII digits that
    fits a BIGINT column.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and raw.isascii() and raw.isdigit() and len(raw) <= ACCOUNT_ID_MAX_DIGITS:
        value = int(raw)
    else:
        return None
    return value if 0 <= value <= ACCOUNT_ID_MAX else None


def validate_username(value: object) -> ValidationResult:
    if not isinstance(value, str):
        return ValidationResult(False, "Username must be a string of characters")
    if not USERNAME_PATTERN.fullmatch(value):
        return ValidationResult(
            False,
            "Username must be alphanumeric and be between 1 and 35 characters in length",
        )
    return VALID


def validate_password(value: object) -> ValidationResult:
    if not isinstance(value, str):
        return ValidationResult(False, "Password must be a string of characters")

    problems: list[str] = []
    if not PASSWORD_MIN_LENGTH <= len(value) <= PASSWORD_MAX_LENGTH:
        problems.append(
            f"Must be at least {PASSWORD_MIN_LENGTH} characters in length "
            f"and no longer than {PASSWORD_MAX_LENGTH} characters"
        )
    if not any(char in PASSWORD_SPECIAL_CHARS for char in value):
        problems.append("Must contain at least one special character")
    if not re.search(r"[a-z]", value):
        problems.append("Must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", value):
        problems.append("Must contain at least one uppercase letter")
    if not re.search(r"[0-9]", value):
        problems.append("Must contain at least one digit")
    if REPEATED_CHAR_PATTERN.search(value):
        problems.append("Must not contain 3 identical characters in a row")

    if problems:
        return ValidationResult(False, ";".join(problems))
    return VALID


def validate_name(value: object) -> ValidationResult:
    if not isinstance(value, str):
        return ValidationResult(False, "Name must be a string of characters")
    if not NAME_PATTERN.fullmatch(value):
        return ValidationResult(
            False,
            "Name must be between 1 and 50 characters in length "
            "and contain only alphabetical symbols, \"'\" and \"-\"",
        )
    if "--" in value:
        return ValidationResult(False, 'Name cannot contain consecutive "-"')
    return VALID


def validate_address(value: object) -> ValidationResult:
    if not isinstance(value, str):
        return ValidationResult(False, "Address must be a string of characters")
    if not ADDRESS_PATTERN.fullmatch(value):
        return ValidationResult(
            False,
            "Address must be between 1 and 100 characters in length "
            'and contain only alphanumeric symbols and "."',
        )
    return VALID


def validate_city(value: object) -> ValidationResult:
    if not isinstance(value, str):
        return ValidationResult(False, "City must be a string of characters")
    if not CITY_PATTERN.fullmatch(value):
        return ValidationResult(
            False,
            "City must be between 1 and 60 characters in length and contain only "
            "alphabetical symbols, \"'\", \",\", \".\", and \"-\"",
        )
    if "--" in value:
        return ValidationResult(False, 'City cannot contain consecutive "-"')
    return VALID


def validate_state_country(value: object) -> ValidationResult:
    if not isinstance(value, str):
        return ValidationResult(False, "State/country must be a string of characters")
    if not STATE_COUNTRY_PATTERN.fullmatch(value):
        return ValidationResult(
            False,
            "State/country must be between 2 and 55 characters in length "
            "and contain only alphabetical symbols",
        )
    return VALID


NEW_USER_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "street",
    "city",
    "country_state",
    "country",
    "username",
    "password",
)

NEW_USER_FIELD_VALIDATORS: Mapping[str, Callable[[object], ValidationResult]] = MappingProxyType(
    {
        "first_name": validate_name,
        "last_name": validate_name,
        "street": validate_address,
        "city": validate_city,
        "country_state": validate_state_country,
        "country": validate_state_country,
        "username": validate_username,
        "password": validate_password,
    }
)


def _check_validators_cover_fields() -> None:
    missing = set(NEW_USER_FIELDS) - set(NEW_USER_FIELD_VALIDATORS)
    extra = set(NEW_USER_FIELD_VALIDATORS) - set(NEW_USER_FIELDS)
    if missing or extra:
        raise RuntimeError(f"Registration validators out of sync: missing={sorted(missing)} extra={sorted(extra)}")


_check_validators_cover_fields()
