"""Unit tests for correction-note provenance helpers."""

import pytest

from reentry_map.normalization.provenance import extract_verification_source, has_documented_source


@pytest.mark.parametrize(
    "notes",
    [
        "Confirmed hours at https://oakshelter.org/contact",
        "Checked oakshelter.org hours page",
        "Phone call with front desk on Monday",
        "Called the front desk, suite is 200",
        "Google Maps listing matches the new suite number",
        "Verified via 211 Alameda listing",
        "Site visit on Tuesday",
    ],
)
def test_documented_sources_are_accepted(notes):
    assert has_documented_source(notes)


@pytest.mark.parametrize(
    "notes",
    [
        "looks fine",
        "",
        "   ",
        None,
        "fixed typo",
        "recalled it looked fine",
        "so-called shelter, looks fine",
        "revisited my notes, looks fine",
        "verified via",
        "Verified via.",
    ],
)
def test_undocumented_notes_are_rejected(notes):
    assert not has_documented_source(notes)


def test_extract_prefers_url_then_domain_then_method():
    assert extract_verification_source("See https://oakshelter.org/about. Also oak.org") == "https://oakshelter.org/about"
    assert extract_verification_source("Verified on OakShelter.org") == "oakshelter.org"
    assert extract_verification_source("Google Maps listing") == "Google Maps"
    assert extract_verification_source("Verified via county directory") == "Verified via"
    assert extract_verification_source("nothing specific") == "WebSearch"
