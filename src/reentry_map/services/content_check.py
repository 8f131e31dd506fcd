"""Model-backed comparison of a candidate against its own website.

The chat model reads the page text and reports whether the organization,
services and description match what was submitted, together with the
contact details the page shows. Those details are then compared field by
field to surface conflicts for the reviewer.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from langchain_core.messages import HumanMessage, SystemMessage

from reentry_map.errors import CollaboratorUnavailable
from reentry_map.models import CandidateFields, FieldConflict
from reentry_map.normalization.normalizer import normalize_address, normalize_name, phone_digits, similarity

LOGGER = logging.getLogger(__name__)

# Contact fields the model is asked to read off the page.
CONFLICT_FIELDS = ("name", "phone", "address", "email")

# A field conflicts when its similarity to the page value falls below this.
CONFLICT_SIMILARITY = 0.7

_FIELD_NORMALIZERS: Dict[str, Callable[[Optional[str]], str]] = {
    "name": normalize_name,
    "phone": phone_digits,
    "address": normalize_address,
    "email": lambda value: (value or "").strip().lower(),
}

_SYSTEM_PROMPT = (
    "You verify community resource submissions against the organization's own website. "
    "Be lenient about wording but flag substantial mismatches. "
    "Respond with a single JSON object and nothing else."
)

_RESPONSE_SHAPE = (
    '{"pass": true|false, "confidence": 0.0-1.0, "evidence": "short explanation", '
    '"found": {"name": str|null, "phone": str|null, "address": str|null, "email": str|null}}'
)


@dataclass(slots=True)
class ContentVerification:
    """What the model concluded about one website."""

    passed: bool
    confidence: float
    evidence: str
    found: Dict[str, str] = field(default_factory=dict)
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0


class PageFetcher(Protocol):
    def fetch_text(self, url: str, timeout_seconds: float) -> Optional[str]:  # pragma: no cover - Protocol
        ...


class ContentVerifier(Protocol):
    """Protocol describing the website-content collaborator.

    ``verify`` returns ``None`` when the page has no readable content and
    raises :class:`CollaboratorUnavailable` when the model cannot answer.
    """

    name: str

    def verify(self, candidate: CandidateFields) -> Optional[ContentVerification]:  # pragma: no cover - Protocol
        ...


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```") and stripped.endswith("```"):
        lines = stripped.splitlines()
        if len(lines) >= 2:
            return "\n".join(lines[1:-1]).strip()
    return stripped


def _clamp(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return min(max(number, 0.0), 1.0)


def detect_conflicts(
    submitted: CandidateFields,
    found: Mapping[str, Optional[str]],
    *,
    source: str,
    threshold: float = CONFLICT_SIMILARITY,
) -> List[FieldConflict]:
    """Return the fields whose submitted value disagrees with ``found``.

    Fields missing on either side are skipped. ``confidence`` is how
    different the two values are (``1 - similarity``).
    """

    conflicts: List[FieldConflict] = []
    for name in CONFLICT_FIELDS:
        submitted_value = getattr(submitted, name)
        found_value = found.get(name)
        if not submitted_value or not found_value:
            continue
        normalize = _FIELD_NORMALIZERS[name]
        score = similarity(normalize(submitted_value), normalize(found_value))
        if score < threshold:
            conflicts.append(
                FieldConflict(
                    field=name,
                    submitted=submitted_value,
                    found=found_value,
                    confidence=round(1.0 - score, 4),
                    source=source,
                )
            )
    return conflicts


class ChatModelContentVerifier:
    """Ask a LangChain chat model whether a website matches the submitted resource."""

    def __init__(
        self,
        *,
        chat_model: Any,
        fetcher: PageFetcher,
        model_name: str,
        timeout_seconds: float = 15.0,
        max_page_chars: int = 5000,
        input_cost_per_million_usd: float = 0.0,
        output_cost_per_million_usd: float = 0.0,
    ) -> None:
        self._chat_model = chat_model
        self._fetcher = fetcher
        self.name = model_name
        self._timeout = timeout_seconds
        self._max_page_chars = max_page_chars
        self._input_price = input_cost_per_million_usd
        self._output_price = output_cost_per_million_usd

    def verify(self, candidate: CandidateFields) -> Optional[ContentVerification]:
        if not candidate.website:
            return None
        page_text = self._fetcher.fetch_text(candidate.website, self._timeout)
        if not page_text:
            LOGGER.info("No readable page content website=%s", candidate.website)
            return None

        messages = [
            SystemMessage(content=_SYSTEM_PROMPT),
            HumanMessage(content=self._build_prompt(candidate, page_text[: self._max_page_chars])),
        ]
        try:
            response = self._chat_model.invoke(messages)
        except Exception as exc:
            LOGGER.warning("Content model call failed website=%s error=%s", candidate.website, exc)
            raise CollaboratorUnavailable(f"Content model unavailable: {exc}") from exc

        usage = getattr(response, "usage_metadata", None) or {}
        input_tokens = int(usage.get("input_tokens") or 0)
        output_tokens = int(usage.get("output_tokens") or 0)
        payload = self._parse(getattr(response, "content", "") or "")
        raw_found = payload.get("found") if isinstance(payload.get("found"), dict) else {}
        found = {name: str(raw_found[name]).strip() for name in CONFLICT_FIELDS if raw_found.get(name)}
        return ContentVerification(
            passed=payload.get("pass") is True,
            confidence=_clamp(payload.get("confidence")),
            evidence=str(payload.get("evidence") or "No evidence provided"),
            found=found,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=round(
                input_tokens / 1_000_000 * self._input_price + output_tokens / 1_000_000 * self._output_price,
                6,
            ),
        )

    def _build_prompt(self, candidate: CandidateFields, page_text: str) -> str:
        services = ", ".join(candidate.services_offered) or "Not specified"
        return (
            "Submitted resource:\n"
            f"- Name: {candidate.name}\n"
            f"- Category: {candidate.primary_category or 'Not specified'}\n"
            f"- Services: {services}\n"
            f"- Description: {candidate.description or 'Not specified'}\n\n"
            f"Website content:\n{page_text}\n\n"
            "Does the organization name match, do the services align with the category, and is the "
            "description consistent with the page? Also copy the name, phone, street address and email "
            "exactly as the page shows them (null when absent).\n"
            f"Respond as JSON: {_RESPONSE_SHAPE}"
        )

    def _parse(self, content: str) -> Dict[str, Any]:
        try:
            data = json.loads(_strip_code_fence(content))
        except json.JSONDecodeError as exc:
            raise CollaboratorUnavailable("Content model returned an unparseable response") from exc
        if not isinstance(data, dict):
            raise CollaboratorUnavailable("Content model response is not a JSON object")
        return data


__all__ = [
    "ContentVerification",
    "ContentVerifier",
    "ChatModelContentVerifier",
    "PageFetcher",
    "detect_conflicts",
    "CONFLICT_FIELDS",
]
