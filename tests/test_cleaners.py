from __future__ import annotations

from compass_caging.cleaners import (
    clean_donor_fields,
    format_address,
    format_name,
    format_phone,
    format_state,
    format_zip,
)


def test_format_name_title_cases_each_word() -> None:
    assert format_name("  mary   ann o'brien ") == "Mary Ann O'Brien"
    assert format_name("") is None
    assert format_name(None) is None


def test_format_address_abbreviates_street_parts() -> None:
    assert format_address("123 north main street apartment 4") == "123 N Main St Apt 4"
    assert format_address("9 OAK BOULEVARD SUITE 200") == "9 Oak Blvd Ste 200"


def test_format_state_maps_full_names() -> None:
    assert format_state("texas") == "TX"
    assert format_state("ny") == "NY"
    assert format_state("District of Columbia") == "DC"


def test_format_zip_handles_short_and_plus_four() -> None:
    assert format_zip("501") == "00501"
    assert format_zip("123456789") == "12345-6789"
    assert format_zip("12345-67") == "12345"
    assert format_zip("n/a") == "00000"
    assert format_zip("") is None
    assert format_zip(None) is None


def test_format_phone_normalizes_ten_digit_numbers() -> None:
    assert format_phone("1-555-123-4567") == "(555) 123-4567"
    assert format_phone("555.123.4567") == "(555) 123-4567"
    assert format_phone("ext 12") == "ext 12"


def test_clean_donor_fields_only_touches_donor_keys() -> None:
    cleaned = clean_donor_fields(
        {
            "donor_first_name": "jANE",
            "donor_email": " Jane@Example.ORG ",
            "donor_state": "california",
            "comment": "  keep as is ",
        }
    )

    assert cleaned["donor_first_name"] == "Jane"
    assert cleaned["donor_email"] == "jane@example.org"
    assert cleaned["donor_state"] == "CA"
    assert cleaned["comment"] == "  keep as is "
    assert "donor_zip" not in cleaned
