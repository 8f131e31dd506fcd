"""Sequential batch processing of pending suggestions."""

from __future__ import annotations

import logging
from typing import List, Optional

from reentry_map.errors import ResourceNotFound, SuggestionNotFound
from reentry_map.models import EventType, QueueFailure, QueueSummary, VerificationDecision
from reentry_map.services.events import NullEventSink, VerificationEventSink
from reentry_map.services.verification import VerificationOutcome, VerificationRunner
from reentry_map.settings import get_settings
from reentry_map.store.resource_store import ResourceStore
from reentry_map.store.suggestion_store import SuggestionStore

LOGGER = logging.getLogger(__name__)

_SUMMARY_COUNTERS = {
    "approved": "approved",
    "merged": "approved",
    "flagged": "flagged",
    "rejected": "rejected",
    "duplicate": "duplicates",
}


class VerificationQueue:
    """Process pending suggestions oldest-first, one at a time.

    A failure on one suggestion is logged, emitted as a ``failed`` event and
    counted; the suggestion stays ``pending`` and the batch moves on.
    """

    def __init__(
        self,
        *,
        suggestion_store: SuggestionStore,
        resource_store: ResourceStore,
        runner: VerificationRunner,
        events: VerificationEventSink | None = None,
        default_batch_size: Optional[int] = None,
        max_batch_size: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._suggestions = suggestion_store
        self._resources = resource_store
        self._runner = runner
        self._events = events or NullEventSink()
        self._default_batch_size = default_batch_size or settings.verification.default_batch_size
        self._max_batch_size = max_batch_size or settings.verification.max_batch_size

    def clamp_batch_size(self, batch_size: Optional[int]) -> int:
        requested = self._default_batch_size if batch_size is None else batch_size
        return max(1, min(int(requested), self._max_batch_size))

    def process_queue(self, batch_size: Optional[int] = None) -> QueueSummary:
        """Verify up to ``batch_size`` pending suggestions and summarize the outcomes."""

        limit = self.clamp_batch_size(batch_size)
        candidates = self._suggestions.list_pending(limit=limit)
        summary = QueueSummary()
        LOGGER.info("Processing verification queue batch_size=%s pending=%s", limit, len(candidates))

        for candidate in candidates:
            summary.processed += 1
            try:
                outcome = self._runner.verify_candidate(candidate)
            except Exception as exc:
                LOGGER.exception("Verification failed suggestion_id=%s name=%s", candidate.id, candidate.name)
                self._emit_failure(candidate.id, exc)
                summary.errors += 1
                summary.failures.append(
                    QueueFailure(suggestion_id=candidate.id, name=candidate.name, error=str(exc))
                )
                continue
            counter = _SUMMARY_COUNTERS[outcome.action]
            setattr(summary, counter, getattr(summary, counter) + 1)
            summary.total_cost_usd = round(summary.total_cost_usd + outcome.cost_usd, 6)

        LOGGER.info(
            "Verification queue done processed=%s approved=%s flagged=%s rejected=%s duplicates=%s errors=%s cost=%.4f",
            summary.processed,
            summary.approved,
            summary.flagged,
            summary.rejected,
            summary.duplicates,
            summary.errors,
            summary.total_cost_usd,
        )
        return summary

    def process_candidate(self, suggestion_id: str) -> VerificationOutcome:
        """Verify a single suggestion immediately; failures are recorded and re-raised."""

        candidate = self._suggestions.get(suggestion_id)
        if candidate is None:
            raise SuggestionNotFound(f"Suggestion {suggestion_id} not found")
        try:
            return self._runner.verify_candidate(candidate)
        except Exception as exc:
            self._emit_failure(suggestion_id, exc)
            raise

    def reverify_resource(self, resource_id: str) -> VerificationDecision:
        resource = self._resources.get(resource_id)
        if resource is None:
            raise ResourceNotFound(f"Resource {resource_id} not found")
        return self._runner.reverify_resource(resource)

    def reverify_due(self, *, limit: int = 25) -> List[VerificationDecision]:
        """Re-verify published resources whose ``next_verification_at`` has passed."""

        decisions: List[VerificationDecision] = []
        for resource in self._resources.list_due_for_verification(limit=limit):
            try:
                decisions.append(self._runner.reverify_resource(resource))
            except Exception as exc:
                LOGGER.exception("Re-verification failed resource_id=%s", resource.id)
                self._events.emit(
                    EventType.FAILED,
                    {"error": str(exc), "error_type": type(exc).__name__},
                    resource_id=resource.id,
                )
        return decisions

    def _emit_failure(self, suggestion_id: str, exc: Exception) -> None:
        self._events.emit(
            EventType.FAILED,
            {"error": str(exc), "error_type": type(exc).__name__},
            suggestion_id=suggestion_id,
        )


__all__ = ["VerificationQueue"]
