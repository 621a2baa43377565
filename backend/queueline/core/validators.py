"""Join form validators.

Each validator returns a ``ValidationResult`` rather than raising, so the
form can report the first failing field's message as-is.
"""

from dataclasses import dataclass
from typing import Any

NAME_MAX_LENGTH = 30
PHONE_LENGTH = 10
PARTY_SIZE_MIN = 1
PARTY_SIZE_MAX = 20

_ASCII_DIGITS = frozenset("0123456789")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str


def validate_name(name: Any) -> ValidationResult:
    if not isinstance(name, str) or not name.strip():
        return ValidationResult(False, "Please enter your name")
    if len(name.strip()) > NAME_MAX_LENGTH:
        return ValidationResult(False, f"Name must not exceed {NAME_MAX_LENGTH} characters")
    return ValidationResult(True, "Name is valid")


def validate_phone(phone: Any) -> ValidationResult:
    """Exactly ten ASCII digits; no trimming, spaces or separators."""
    if not isinstance(phone, str) or not phone.strip():
        return ValidationResult(False, "Please enter your phone number")
    if len(phone) != PHONE_LENGTH:
        return ValidationResult(False, f"Phone number must be exactly {PHONE_LENGTH} digits")
    # str.isdigit() accepts non-ASCII digits such as "١٢٣"
    if not set(phone) <= _ASCII_DIGITS:
        return ValidationResult(False, "Phone number must contain only digits")
    return ValidationResult(True, "Phone number is valid")


def parse_party_size(party_size: Any) -> int | None:
    """Integer-parse a party size the way a form field would; None if unparseable."""
    if isinstance(party_size, bool):
        return None
    if isinstance(party_size, int):
        return party_size
    if isinstance(party_size, float):
        return int(party_size) if party_size.is_integer() else None
    if isinstance(party_size, str):
        try:
            return int(party_size.strip())
        except ValueError:
            return None
    return None


def validate_party_size(party_size: Any) -> ValidationResult:
    size = parse_party_size(party_size)
    if size is None or size < PARTY_SIZE_MIN:
        return ValidationResult(False, f"Party size must be at least {PARTY_SIZE_MIN}")
    if size > PARTY_SIZE_MAX:
        return ValidationResult(False, f"Party size cannot exceed {PARTY_SIZE_MAX}")
    return ValidationResult(True, "Party size is valid")


def validate_join_form(name: Any, phone: Any, party_size: Any) -> ValidationResult:
    """Validate name, then phone, then party size; the first failure wins."""
    for result in (
        validate_name(name),
        validate_phone(phone),
        validate_party_size(party_size),
    ):
        if not result.valid:
            return result
    return ValidationResult(True, "All fields are valid")
