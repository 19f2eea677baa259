"""
Unit tests for the phone normalizer.

Tests:
- normalize_phone / is_valid_phone / validate_phone
- format_phone_mask
- phones_match and lookup variants
"""

import pytest

from carechat.core.domain.exceptions import PhoneValidationError
from carechat.core.shared.phone_normalizer import (
    PhoneNumberInfo,
    format_phone_mask,
    is_valid_phone,
    normalize_phone,
    phone_variants,
    phones_match,
    strip_country_code,
    validate_phone,
)

# ============================================================================
# Normalization
# ============================================================================


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["(85) 99620-1636", "85996201636", "85 99620-1636", "+85.99620.1636"])
def test_normalize_phone_formats_converge(raw):
    """Test every human format normalizes to the same digits."""
    assert normalize_phone(raw) == "85996201636"


@pytest.mark.unit
def test_normalize_phone_empty():
    """Test empty and None input normalize to an empty string."""
    assert normalize_phone(None) == ""
    assert normalize_phone("") == ""
    assert normalize_phone("abc") == ""


@pytest.mark.unit
@pytest.mark.parametrize(
    ("digits", "expected"),
    [
        ("8599620163", True),  # 10 - landline
        ("85996201636", True),  # 11 - mobile
        ("859962016", False),  # 9
        ("558599620163", False),  # 12
    ],
)
def test_is_valid_phone_length_boundaries(digits, expected):
    """Test only 10 and 11 digit numbers are valid."""
    assert is_valid_phone(digits) is expected


@pytest.mark.unit
def test_validate_phone_returns_digits():
    """Test validate_phone returns the normalized form."""
    assert validate_phone("(85) 99620-1636") == "85996201636"


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["", "   ", "859962016", "5585996201636"])
def test_validate_phone_rejects_invalid(raw):
    """Test validate_phone raises with a descriptive reason."""
    with pytest.raises(PhoneValidationError) as exc_info:
        validate_phone(raw)

    assert exc_info.value.code == "INVALID_PHONE"
    assert exc_info.value.message


# ============================================================================
# Display mask
# ============================================================================


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("85996201636", "(85) 99620-1636"),
        ("8532221234", "(85) 3222-1234"),
        ("85", "(85"),
        ("85996", "(85) 996"),
        ("8599620163699", "(85) 99620-1636"),
    ],
)
def test_format_phone_mask(raw, expected):
    """Test the display mask for full and partial numbers."""
    assert format_phone_mask(raw) == expected


# ============================================================================
# Matching
# ============================================================================


@pytest.mark.unit
def test_phones_match_ignores_formatting_and_country_code():
    """Test matching compares normalized national digits only."""
    assert phones_match("(85) 99620-1636", "85996201636")
    assert phones_match("+55 85 99620-1636", "85996201636")
    assert not phones_match("(85) 99620-1637", "85996201636")
    assert not phones_match(None, "85996201636")


@pytest.mark.unit
def test_strip_country_code_keeps_national_numbers():
    """Test a national number starting with 55 is not stripped."""
    assert strip_country_code("55996201636") == "55996201636"
    assert strip_country_code("5585996201636") == "85996201636"


@pytest.mark.unit
def test_phone_variants_start_with_digits():
    """Test lookup variants start with the normalized digits and are unique."""
    variants = phone_variants("85996201636")

    assert variants[0] == "85996201636"
    assert "(85) 99620-1636" in variants
    assert "+5585996201636" in variants
    assert len(variants) == len(set(variants))


@pytest.mark.unit
def test_phone_number_info_from_raw():
    """Test the summary model."""
    info = PhoneNumberInfo.from_raw("85 99620-1636")

    assert info.normalized == "85996201636"
    assert info.display == "(85) 99620-1636"
    assert info.is_valid is True
