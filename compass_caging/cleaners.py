"""Normalizers applied to donor fields keyed in from reply slips and imports."""

from __future__ import annotations

import re

US_STATE_CODES = {
    "ALABAMA": "AL",
    "ALASKA": "AK",
    "ARIZONA": "AZ",
    "ARKANSAS": "AR",
    "CALIFORNIA": "CA",
    "COLORADO": "CO",
    "CONNECTICUT": "CT",
    "DELAWARE": "DE",
    "DISTRICT OF COLUMBIA": "DC",
    "FLORIDA": "FL",
    "GEORGIA": "GA",
    "HAWAII": "HI",
    "IDAHO": "ID",
    "ILLINOIS": "IL",
    "INDIANA": "IN",
    "IOWA": "IA",
    "KANSAS": "KS",
    "KENTUCKY": "KY",
    "LOUISIANA": "LA",
    "MAINE": "ME",
    "MARYLAND": "MD",
    "MASSACHUSETTS": "MA",
    "MICHIGAN": "MI",
    "MINNESOTA": "MN",
    "MISSISSIPPI": "MS",
    "MISSOURI": "MO",
    "MONTANA": "MT",
    "NEBRASKA": "NE",
    "NEVADA": "NV",
    "NEW HAMPSHIRE": "NH",
    "NEW JERSEY": "NJ",
    "NEW MEXICO": "NM",
    "NEW YORK": "NY",
    "NORTH CAROLINA": "NC",
    "NORTH DAKOTA": "ND",
    "OHIO": "OH",
    "OKLAHOMA": "OK",
    "OREGON": "OR",
    "PENNSYLVANIA": "PA",
    "RHODE ISLAND": "RI",
    "SOUTH CAROLINA": "SC",
    "SOUTH DAKOTA": "SD",
    "TENNESSEE": "TN",
    "TEXAS": "TX",
    "UTAH": "UT",
    "VERMONT": "VT",
    "VIRGINIA": "VA",
    "WASHINGTON": "WA",
    "WEST VIRGINIA": "WV",
    "WISCONSIN": "WI",
    "WYOMING": "WY",
}

# Applied in order after title casing. Directionals only match between words.
_ADDRESS_REPLACEMENTS = (
    (r" Street\b", " St"),
    (r" Road\b", " Rd"),
    (r" Avenue\b", " Ave"),
    (r" Drive\b", " Dr"),
    (r" Lane\b", " Ln"),
    (r" Boulevard\b", " Blvd"),
    (r" Court\b", " Ct"),
    (r" Circle\b", " Cir"),
    (r" North ", " N "),
    (r" South ", " S "),
    (r" East ", " E "),
    (r" West ", " W "),
    (r" Ne ", " NE "),
    (r" Nw ", " NW "),
    (r" Se ", " SE "),
    (r" Sw ", " SW "),
    (r" Apartment\b", " Apt"),
    (r" Suite\b", " Ste"),
)


def clean_text(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = re.sub(r"\s+", " ", str(value).strip())
    return cleaned or None


def format_name(value: str | None) -> str | None:
    cleaned = clean_text(value)
    if cleaned is None:
        return None
    return re.sub(r"\b(\w)", lambda match: match.group(1).upper(), cleaned.lower())


def format_state(value: str | None) -> str | None:
    cleaned = clean_text(value)
    if cleaned is None:
        return None
    upper = cleaned.upper()
    if len(upper) == 2:
        return upper
    return US_STATE_CODES.get(upper, upper[:2])


def format_address(value: str | None) -> str | None:
    formatted = format_name(value)
    if formatted is None:
        return None
    for pattern, abbreviation in _ADDRESS_REPLACEMENTS:
        formatted = re.sub(pattern, abbreviation, formatted, flags=re.IGNORECASE)
    return formatted


def format_zip(value: str | None) -> str | None:
    if not value:
        return None
    digits = re.sub(r"[^0-9]", "", str(value))
    if len(digits) == 9:
        return f"{digits[:5]}-{digits[5:]}"
    if len(digits) > 5:
        return digits[:5]
    return digits.zfill(5)


def format_email(value: str | None) -> str | None:
    cleaned = clean_text(value)
    if cleaned is None:
        return None
    return cleaned.lower()


def format_phone(value: str | None) -> str | None:
    cleaned = clean_text(value)
    if cleaned is None:
        return None
    digits = re.sub(r"\D", "", cleaned)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return cleaned


_DONOR_FIELD_FORMATTERS = (
    ("donor_first_name", format_name),
    ("donor_middle_name", format_name),
    ("donor_last_name", format_name),
    ("donor_suffix", clean_text),
    ("donor_address", format_address),
    ("donor_city", format_name),
    ("donor_state", format_state),
    ("donor_zip", format_zip),
    ("donor_employer", format_name),
    ("donor_occupation", format_name),
    ("donor_email", format_email),
    ("donor_phone", format_phone),
)


def clean_donor_fields(values: dict) -> dict:
    """Return a copy of ``values`` with every donor field present normalized."""

    cleaned = dict(values)
    for field_name, formatter in _DONOR_FIELD_FORMATTERS:
        if field_name in cleaned:
            cleaned[field_name] = formatter(cleaned[field_name])
    return cleaned
