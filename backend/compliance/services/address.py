"""Heuristic street-line parsing for the identity provider's address fields.

Lossy and UK-centric: it only has to fill the provider's ``premise`` and
``thoroughfare`` fields well enough for matching.
"""

import re
from typing import Any, Dict

from .domain import Address

# "Flat 2, ", "Apartment 10B ", "unit 4 "
_UNIT_PREFIX = re.compile(r"^(flat|apartment|unit)\s+\d+[a-z]?,?\s*", re.IGNORECASE)
# "12", "12A", "12-14"
_LEADING_NUMBER = re.compile(r"^(\d+-?\d*[a-z]?)", re.IGNORECASE)
_AFTER_COMMA_NUMBER = re.compile(r",\s*(\d+-?\d*[a-z]?)", re.IGNORECASE)
_ANY_NUMBER = re.compile(r"\b(\d+-?\d*[a-z]?)\b", re.IGNORECASE)
_PURE_NUMBER = re.compile(r"^\d+$")


def extract_premise(line: str) -> str:
    """
    Extract the building number from a free-form street line.

    First match wins:
        1. leading number after stripping a flat/apartment/unit prefix
        2. number right after a comma ("Building Name, 123 Street")
        3. first standalone number anywhere in the line
        4. empty string

    Examples:
        "Flat 2, 280 Eastern Avenue" -> "280"
        "12-14 High Street" -> "12-14"
        "Main Street" -> ""
    """
    if not line:
        return ""

    without_prefix = _UNIT_PREFIX.sub("", line, count=1)
    match = _LEADING_NUMBER.match(without_prefix)
    if match:
        return match.group(1)

    match = _AFTER_COMMA_NUMBER.search(line)
    if match:
        return match.group(1)

    match = _ANY_NUMBER.search(line)
    if match:
        return match.group(1)

    return ""


def derive_thoroughfare(line1: str) -> str:
    """Street name: line1 minus a leading purely numeric token."""
    parts = (line1 or "").split(" ")
    if parts and _PURE_NUMBER.match(parts[0]):
        return " ".join(parts[1:])
    return line1 or ""


def build_current_address(address: Address) -> Dict[str, Any]:
    """Structured ``currentAddress`` block for a journey start request."""
    lines = address.lines
    current = {
        "lines": lines,
        "locality": address.town,
        "postalCode": address.postcode,
        "country": address.country or "GB",
        "addressString": f"{','.join(lines)}, {address.postcode}, United Kingdom",
        "premise": extract_premise(address.line1),
        "thoroughfare": derive_thoroughfare(address.line1),
        "administrativeArea": "England",
    }
    if address.county:
        current["subAdministrativeArea"] = address.county
    return current
