"""Helpers that inspect admin correction notes for a documented verification source."""

from __future__ import annotations

import re
from typing import Optional

from reentry_map.normalization.reference_data import SOURCE_TLDS, VERIFICATION_METHODS

_URL_PATTERN = re.compile(r"https?://[^\s)\]>,;]+", re.IGNORECASE)
_DOMAIN_PATTERN = re.compile(
    r"\b(?:[a-z0-9](?:[a-z0-9-]*[a-z0-9])?\.)+(?:" + "|".join(SOURCE_TLDS) + r")\b",
    re.IGNORECASE,
)
# A phrase ending in a preposition ("verified via") only counts when a source follows it.
_NAMED_OBJECT = r"\s+[a-z0-9][\w.&'-]*"


def _method_pattern(phrase: str) -> re.Pattern[str]:
    body = r"\s+".join(re.escape(word) for word in phrase.split())
    tail = _NAMED_OBJECT if phrase.endswith(" via") else ""
    return re.compile(r"(?<![\w-])" + body + r"(?![\w-])" + tail, re.IGNORECASE)


_METHOD_PATTERNS = [(_method_pattern(phrase), label) for phrase, label in VERIFICATION_METHODS.items()]


def _find_method(notes: str) -> Optional[str]:
    for pattern, label in _METHOD_PATTERNS:
        if pattern.search(notes):
            return label
    return None


def has_documented_source(notes: Optional[str]) -> bool:
    """True when ``notes`` cite a URL, a domain or a named verification method."""

    if not notes or not notes.strip():
        return False
    if _URL_PATTERN.search(notes) or _DOMAIN_PATTERN.search(notes):
        return True
    return _find_method(notes) is not None


def extract_verification_source(notes: str) -> str:
    """Return the most specific source cited in ``notes``.

    A URL wins over a bare domain, which wins over a method label. Notes
    without any of those fall back to ``"WebSearch"``.
    """

    url = _URL_PATTERN.search(notes)
    if url:
        return url.group(0).rstrip(".")
    domain = _DOMAIN_PATTERN.search(notes)
    if domain:
        return domain.group(0).lower()
    return _find_method(notes) or "WebSearch"


__all__ = ["has_documented_source", "extract_verification_source"]
