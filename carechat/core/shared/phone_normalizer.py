"""
Phone Normalizer

Pure functions that turn arbitrary phone text into the canonical digit string used
as lookup key for patients, plus helpers for display masks and for comparing
numbers stored by external systems in any human format.

Usage:
    from carechat.core.shared.phone_normalizer import normalize_phone, validate_phone

    normalize_phone("(85) 99620-1636")   # "85996201636"
    validate_phone("85 99620-1636")      # "85996201636"
    validate_phone("123")                # raises PhoneValidationError
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from carechat.core.domain.exceptions import PhoneValidationError

MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 11
DEFAULT_COUNTRY_CODE = "55"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(text: str | None) -> str:
    """Strip every non-digit character."""
    if not text:
        return ""
    return _NON_DIGITS.sub("", text)


def is_valid_phone(text: str | None) -> bool:
    """True when the normalized form has 10 (landline) or 11 (mobile) digits."""
    return MIN_PHONE_DIGITS <= len(normalize_phone(text)) <= MAX_PHONE_DIGITS


def validate_phone(text: str | None) -> str:
    """
    Normalize and validate phone text.

    Args:
        text: Phone number in any human format

    Returns:
        Normalized digit string

    Raises:
        PhoneValidationError: If the normalized form is empty, shorter than 10
            or longer than 11 digits
    """
    digits = normalize_phone(text)
    if not digits:
        raise PhoneValidationError("phone is empty", raw_value=text, digits=0)
    if len(digits) < MIN_PHONE_DIGITS:
        raise PhoneValidationError(
            f"expected at least {MIN_PHONE_DIGITS} digits, got {len(digits)}",
            raw_value=text,
            digits=len(digits),
        )
    if len(digits) > MAX_PHONE_DIGITS:
        raise PhoneValidationError(
            f"expected at most {MAX_PHONE_DIGITS} digits, got {len(digits)}",
            raw_value=text,
            digits=len(digits),
        )
    return digits


def format_phone_mask(text: str | None) -> str:
    """
    Format a phone number for display.

    10 digits -> (XX) XXXX-XXXX, 11 digits -> (XX) XXXXX-XXXX.
    Longer input is truncated to 11 digits; shorter input gets a partial mask.
    """
    digits = normalize_phone(text)

    if len(digits) <= 2:
        return f"({digits}"
    if len(digits) <= 6:
        return f"({digits[:2]}) {digits[2:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) {digits[2:6]}-{digits[6:]}"

    digits = digits[:MAX_PHONE_DIGITS]
    return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"


def strip_country_code(digits: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Drop a leading country code when what remains is a valid national number.

    Args:
        digits: Already normalized digit string
        country_code: Country calling code to strip

    Returns:
        National number, or the input unchanged
    """
    if digits.startswith(country_code):
        national = digits[len(country_code):]
        if MIN_PHONE_DIGITS <= len(national) <= MAX_PHONE_DIGITS and len(digits) > MAX_PHONE_DIGITS:
            return national
    return digits


def phones_match(left: str | None, right: str | None, country_code: str = DEFAULT_COUNTRY_CODE) -> bool:
    """Compare two phone values on their normalized national digits only."""
    a = strip_country_code(normalize_phone(left), country_code)
    b = strip_country_code(normalize_phone(right), country_code)
    return bool(a) and a == b


def phone_variants(digits: str, country_code: str = DEFAULT_COUNTRY_CODE) -> list[str]:
    """
    Lookup variants for external systems that store numbers as typed by humans.

    The normalized digits always come first.
    """
    variants = [digits]
    masked = format_phone_mask(digits)
    for candidate in (masked, f"{country_code}{digits}", f"+{country_code}{digits}"):
        if candidate not in variants:
            variants.append(candidate)
    return variants


class PhoneNumberInfo(BaseModel):
    """Summary of a phone value as received and as stored."""

    raw: str = Field(..., description="Raw text as received")
    normalized: str = Field(..., description="Digits only")
    display: str = Field(..., description="Display mask")
    is_valid: bool = Field(..., description="10 or 11 digits")

    @classmethod
    def from_raw(cls, raw: str) -> PhoneNumberInfo:
        normalized = normalize_phone(raw)
        return cls(
            raw=raw,
            normalized=normalized,
            display=format_phone_mask(normalized),
            is_valid=is_valid_phone(normalized),
        )
