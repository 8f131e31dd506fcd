"""Rule-based normalization of resource names, addresses and phone numbers.

These helpers canonicalize the identity signals compared by duplicate
detection and parent/child grouping, and build the address text sent to the
geocoder.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from difflib import SequenceMatcher
from typing import Iterable, Optional

from reentry_map.normalization.reference_data import (
    DEFAULT_CADENCE_DAYS,
    DIRECTIONALS,
    FIELD_CADENCE_DAYS,
    NAME_STOPWORDS,
    STREET_SUFFIXES,
    UNCHANGED_CADENCE_DAYS,
    US_STATE_CODES,
)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_EXTENSION = re.compile(r"\s*(?:ext\.?|extension|x|#)\s*\d+\s*$", re.IGNORECASE)
_PAREN_SUFFIX = re.compile(r"\s*\((?P<suffix>[^()]+)\)\s*$")
_NUMBER_SUFFIX = re.compile(r"\s*(?:#\s*\d+|\bno\.?\s*\d+|\blocation\s+\d+)\s*$", re.IGNORECASE)
_SEPARATOR_SUFFIX = re.compile(r"(?:\s+[-|:]\s+|\s*[–—]\s*)(?P<suffix>[^-|:–—]+)$")
_LOCATION_TRIM = " \t-|:,#()–—"


def normalize_text(value: Optional[str]) -> str:
    """Lowercase ``value``, replace punctuation with spaces and collapse whitespace."""

    if not value:
        return ""
    lowered = value.lower().replace("&", " and ").replace("'", "")
    return " ".join(_NON_ALNUM.sub(" ", lowered).split())


def normalize_name(name: Optional[str]) -> str:
    """Canonical form of an organization name (case/punctuation-insensitive)."""

    tokens = normalize_text(name).split()
    while tokens and tokens[0] in NAME_STOPWORDS:
        tokens = tokens[1:]
    return " ".join(tokens)


def normalize_address(address: Optional[str]) -> str:
    """Canonical street address with USPS suffixes and directionals folded."""

    tokens = []
    for token in normalize_text(address).split():
        token = STREET_SUFFIXES.get(token, token)
        token = DIRECTIONALS.get(token, token)
        tokens.append(token)
    return " ".join(tokens)


def phone_digits(phone: Optional[str]) -> str:
    """Digits of ``phone`` with a leading US country code removed."""

    if not phone:
        return ""
    digits = re.sub(r"\D", "", _EXTENSION.sub("", phone))
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    return digits


def is_valid_nanp(digits: str) -> bool:
    """True for a 10-digit North American number with valid area code and exchange."""

    return len(digits) == 10 and digits[0] in "23456789" and digits[3] in "23456789"


def format_us_phone(digits: str) -> str:
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


def normalize_state(state: Optional[str]) -> str:
    """Return the lowercase USPS code for ``state``; unknown values are returned normalized."""

    text = normalize_text(state)
    return US_STATE_CODES.get(text, text)


def similarity(left: Optional[str], right: Optional[str]) -> float:
    """Return a 0..1 similarity ratio between two already-normalized strings."""

    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    return SequenceMatcher(None, left, right).ratio()


# ---------------------------------------------------------------------------
# Multi-location organizations
# ---------------------------------------------------------------------------


def extract_org_name(name: str) -> str:
    """Strip a trailing location qualifier from ``name``.

    ``"Community Center - Eastside"``, ``"Acme (Oakland Office)"`` and
    ``"Acme #2"`` all reduce to their organization root. Names without a
    recognizable qualifier are returned unchanged (trimmed).
    """

    base = name.strip()
    changed = True
    while changed:
        changed = False
        for pattern in (_PAREN_SUFFIX, _NUMBER_SUFFIX, _SEPARATOR_SUFFIX):
            stripped = pattern.sub("", base).strip()
            if stripped and stripped != base:
                base = stripped
                changed = True
                break
    return base


def org_key(name: str) -> str:
    """Grouping key shared by every location of the same organization."""

    return normalize_name(extract_org_name(name))


def location_name(name: str, org_name: str) -> Optional[str]:
    """Return the branch label left after removing ``org_name`` from ``name``."""

    stripped = name.strip()
    if stripped.lower().startswith(org_name.lower()):
        remainder = stripped[len(org_name) :]
    else:
        remainder = stripped.replace(org_name, "")
    remainder = remainder.strip(_LOCATION_TRIM)
    return remainder or None


# ---------------------------------------------------------------------------
# Geocoding + re-verification helpers
# ---------------------------------------------------------------------------


def enrich_address(
    address: Optional[str],
    city: Optional[str] = None,
    state: Optional[str] = None,
    zip_code: Optional[str] = None,
) -> str:
    """Build full geocoder input, appending city/state/zip missing from ``address``."""

    street = (address or "").strip().rstrip(",")
    lowered = street.lower()
    parts = [street] if street else []
    if city and city.strip().lower() not in lowered:
        parts.append(city.strip())
    region = []
    if state and not re.search(rf"\b{re.escape(state.strip().lower())}\b", lowered):
        region.append(state.strip())
    if zip_code and zip_code.strip() not in street:
        region.append(zip_code.strip())
    if region:
        parts.append(" ".join(region))
    return ", ".join(parts)


def next_verification_date(changed_fields: Iterable[str], *, now: datetime | None = None) -> datetime:
    """Return when a resource is next due for verification.

    The shortest cadence among the changed fields wins; with no changed
    fields the resource is checked again after the default unchanged window.
    """

    current = now or datetime.now(timezone.utc)
    cadences = [FIELD_CADENCE_DAYS.get(field, DEFAULT_CADENCE_DAYS) for field in changed_fields]
    days = min(cadences) if cadences else UNCHANGED_CADENCE_DAYS
    return current + timedelta(days=days)


__all__ = [
    "normalize_text",
    "normalize_name",
    "normalize_address",
    "phone_digits",
    "is_valid_nanp",
    "format_us_phone",
    "normalize_state",
    "similarity",
    "extract_org_name",
    "org_key",
    "location_name",
    "enrich_address",
    "next_verification_date",
]
