"""Unit tests for reentry_map.normalization.normalizer.

These tests pin the canonical forms compared by duplicate detection and
parent/child grouping.
"""

from datetime import datetime, timedelta, timezone

import pytest

from reentry_map.normalization.normalizer import (
    enrich_address,
    extract_org_name,
    format_us_phone,
    is_valid_nanp,
    location_name,
    next_verification_date,
    normalize_address,
    normalize_name,
    org_key,
    phone_digits,
    similarity,
)


def test_normalize_name_ignores_case_punctuation_and_leading_article():
    assert normalize_name("The Oak St. Shelter!") == "oak st shelter"
    assert normalize_name("oak st shelter") == normalize_name("OAK ST. SHELTER")


def test_normalize_address_folds_suffixes_and_directionals():
    assert normalize_address("123 North Oak Street, Suite 4") == "123 n oak st ste 4"
    assert normalize_address("123 Oak St.") == normalize_address("123 oak street")


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("(510) 555-0199", "5105550199"),
        ("+1 510.555.0199", "5105550199"),
        ("1-510-555-0199 ext. 12", "5105550199"),
        ("555-0100", "5550100"),
        (None, ""),
    ],
)
def test_phone_digits(raw, expected):
    assert phone_digits(raw) == expected


def test_nanp_validation_and_formatting():
    assert is_valid_nanp("5105550199")
    assert not is_valid_nanp("5550100")
    assert not is_valid_nanp("1235550199")  # area code cannot start with 1
    assert not is_valid_nanp("5101550199")  # neither can the exchange
    assert format_us_phone("5105550199") == "(510) 555-0199"


def test_similarity_bounds():
    assert similarity("oak st shelter", "oak st shelter") == 1.0
    assert similarity("", "oak") == 0.0
    assert 0.8 < similarity("oak street shelter", "oak st shelter") < 1.0


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Community Center - Eastside", "Community Center"),
        ("Goodwill – Eastside", "Goodwill"),
        ("Acme Services (Oakland Office)", "Acme Services"),
        ("Acme Services #2", "Acme Services"),
        ("Acme Services No. 3", "Acme Services"),
        ("Oakland Job Center", "Oakland Job Center"),
    ],
)
def test_extract_org_name(name, expected):
    assert extract_org_name(name) == expected


def test_org_key_and_location_name():
    assert org_key("Community Center - Eastside") == org_key("community center – westside")
    assert location_name("Community Center - Eastside", "Community Center") == "Eastside"
    assert location_name("Acme (Oakland Office)", "Acme") == "Oakland Office"
    assert location_name("Acme", "Acme") is None


def test_enrich_address_appends_missing_parts_only():
    assert enrich_address("123 Oak St", "Oakland", "CA", "94607") == "123 Oak St, Oakland, CA 94607"
    full = "123 Oak St, Oakland, CA 94607"
    assert enrich_address(full, "Oakland", "CA", "94607") == full
    assert enrich_address(None, "Oakland", "CA") == "Oakland, CA"


def test_next_verification_date_uses_shortest_cadence():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert next_verification_date(["address", "phone"], now=now) == now + timedelta(days=30)
    assert next_verification_date(["name"], now=now) == now + timedelta(days=365)
    assert next_verification_date(["unlisted_field"], now=now) == now + timedelta(days=90)
    assert next_verification_date([], now=now) == now + timedelta(days=30)
