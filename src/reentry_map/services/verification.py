"""Run one verification pass over a suggestion or a published resource."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from reentry_map.errors import ValidationError
from reentry_map.models import (
    CandidateFields,
    Decision,
    DuplicateAction,
    DuplicateCheckResult,
    EventType,
    Resource,
    ResourceCandidate,
    VerificationCheckResult,
    VerificationDecision,
    VerificationType,
)
from reentry_map.observability import Observability, get_observability
from reentry_map.services.checks import FieldVerificationChecker
from reentry_map.services.decision import DecisionEngine
from reentry_map.services.deduplication import DuplicateDetector
from reentry_map.services.events import NullEventSink, VerificationEventSink
from reentry_map.services.grouping import is_sibling_location
from reentry_map.services.lifecycle import SuggestionLifecycleManager
from reentry_map.settings import get_settings
from reentry_map.store.verification_log_store import VerificationLogStore

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class VerificationOutcome:
    """What happened to one candidate in a verification pass."""

    suggestion_id: str
    action: str
    duplicate: DuplicateCheckResult
    decision: Optional[VerificationDecision] = None
    resource_id: Optional[str] = None
    cost_usd: float = 0.0


class VerificationRunner:
    """Drive duplicate detection, field checks, the decision and its execution for one item."""

    def __init__(
        self,
        *,
        detector: DuplicateDetector,
        checker: FieldVerificationChecker,
        engine: DecisionEngine,
        lifecycle: SuggestionLifecycleManager,
        log_store: VerificationLogStore,
        events: VerificationEventSink | None = None,
        geocoder_name: str = "geocoder",
        agent_version: Optional[str] = None,
        observability: Observability | None = None,
    ) -> None:
        self._detector = detector
        self._checker = checker
        self._engine = engine
        self._lifecycle = lifecycle
        self._logs = log_store
        self._events = events or NullEventSink()
        self._geocoder_name = geocoder_name
        self._agent_version = agent_version or get_settings().verification.agent_version
        self._observability = observability or get_observability(component="verification")

    def verify_candidate(self, candidate: ResourceCandidate) -> VerificationOutcome:
        """Verify a pending suggestion and apply the resulting decision."""

        started_at = _utcnow()
        timer = time.perf_counter()
        self._events.emit(EventType.STARTED, {"name": candidate.name}, suggestion_id=candidate.id)

        duplicate = self._detector.check_for_duplicate(candidate)
        if (
            duplicate.suggested_action is DuplicateAction.UPDATE
            and duplicate.existing_resource is not None
            and is_sibling_location(candidate, duplicate.existing_resource)
        ):
            LOGGER.info(
                "Treating near match as a new location suggestion_id=%s resource_id=%s",
                candidate.id,
                duplicate.existing_resource.id,
            )
            duplicate = DuplicateCheckResult(
                is_duplicate=False,
                suggested_action=DuplicateAction.PROCEED,
                match_score=duplicate.match_score,
                match_type="sibling_location",
            )
        existing = duplicate.existing_resource
        self._events.emit(
            EventType.PROGRESS,
            {
                "step": "duplicate_check",
                "suggested_action": duplicate.suggested_action.value,
                "match_score": duplicate.match_score,
                "match_type": duplicate.match_type,
                "existing_resource_id": existing.id if existing else None,
            },
            suggestion_id=candidate.id,
        )

        if duplicate.suggested_action is DuplicateAction.SKIP and existing is not None:
            self._lifecycle.close_as_duplicate(candidate.id, existing.id, duplicate.match_score)
            outcome = VerificationOutcome(
                suggestion_id=candidate.id,
                action="duplicate",
                duplicate=duplicate,
                resource_id=existing.id,
            )
            self._complete(outcome, timer)
            return outcome

        decision = self._run_checks(candidate, suggestion_id=candidate.id)
        self._logs.record_verification(
            decision=decision,
            verification_type=VerificationType.INITIAL,
            agent_version=self._agent_version,
            started_at=started_at,
            completed_at=_utcnow(),
            suggestion_id=candidate.id,
            resource_id=existing.id if existing else None,
        )

        action, resource_id = self._apply(candidate, decision, duplicate)
        outcome = VerificationOutcome(
            suggestion_id=candidate.id,
            action=action,
            duplicate=duplicate,
            decision=decision,
            resource_id=resource_id,
            cost_usd=decision.total_cost_usd,
        )
        self._complete(outcome, timer)
        return outcome

    def reverify_resource(self, resource: Resource) -> VerificationDecision:
        """Re-run the field checks against a published resource and record the outcome."""

        started_at = _utcnow()
        self._events.emit(EventType.STARTED, {"name": resource.name}, resource_id=resource.id)
        decision = self._run_checks(resource, resource_id=resource.id)
        self._logs.record_verification(
            decision=decision,
            verification_type=VerificationType.PERIODIC,
            agent_version=self._agent_version,
            started_at=started_at,
            completed_at=_utcnow(),
            resource_id=resource.id,
        )
        self._lifecycle.record_reverification(resource.id, decision)
        self._events.emit(
            EventType.COMPLETED,
            {
                "decision": decision.decision.value,
                "score": decision.overall_score,
                "cost_usd": decision.total_cost_usd,
            },
            resource_id=resource.id,
        )
        return decision

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _run_checks(
        self,
        subject: CandidateFields,
        *,
        suggestion_id: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> VerificationDecision:
        checks: Dict[str, VerificationCheckResult] = self._checker.run_checks(subject)
        self._events.emit(
            EventType.PROGRESS,
            {
                "step": "checks",
                "results": {name: {"passed": check.passed, "error": check.error} for name, check in checks.items()},
            },
            suggestion_id=suggestion_id,
            resource_id=resource_id,
        )
        for name, check in checks.items():
            if check.cost_usd <= 0 and not (check.input_tokens or check.output_tokens):
                continue
            self._logs.record_usage(
                operation=name,
                provider=str(check.details.get("provider") or self._geocoder_name),
                cost_usd=check.cost_usd,
                input_tokens=check.input_tokens,
                output_tokens=check.output_tokens,
                suggestion_id=suggestion_id,
                resource_id=resource_id,
            )
            self._events.emit(
                EventType.COST,
                {
                    "operation": name,
                    "cost_usd": check.cost_usd,
                    "input_tokens": check.input_tokens,
                    "output_tokens": check.output_tokens,
                },
                suggestion_id=suggestion_id,
                resource_id=resource_id,
            )

        decision = self._engine.decide(checks)
        self._events.emit(
            EventType.PROGRESS,
            {"step": "decision", "decision": decision.decision.value, "score": decision.overall_score},
            suggestion_id=suggestion_id,
            resource_id=resource_id,
        )
        return decision

    def _apply(
        self,
        candidate: ResourceCandidate,
        decision: VerificationDecision,
        duplicate: DuplicateCheckResult,
    ) -> tuple[str, Optional[str]]:
        existing = duplicate.existing_resource
        if decision.decision is Decision.AUTO_APPROVE:
            if duplicate.suggested_action is DuplicateAction.UPDATE and existing is not None:
                return "merged", self._lifecycle.merge_into_existing(candidate.id, existing.id, decision)
            try:
                return "approved", self._lifecycle.approve(candidate.id, decision)
            except ValidationError as exc:
                LOGGER.info("Auto-approval downgraded suggestion_id=%s reason=%s", candidate.id, exc)
                self._lifecycle.flag_for_human(
                    candidate.id,
                    f"Passed verification but cannot be published: {exc}",
                    decision=decision,
                    reason="missing_details",
                )
                return "flagged", None
        if decision.decision is Decision.AUTO_REJECT:
            self._lifecycle.auto_reject(candidate.id, decision)
            return "rejected", None
        self._lifecycle.flag_for_human(candidate.id, decision.reason, decision=decision)
        return "flagged", None

    def _complete(self, outcome: VerificationOutcome, timer: float) -> None:
        elapsed_ms = round((time.perf_counter() - timer) * 1000, 2)
        self._events.emit(
            EventType.COMPLETED,
            {
                "action": outcome.action,
                "decision": outcome.decision.decision.value if outcome.decision else None,
                "score": outcome.decision.overall_score if outcome.decision else outcome.duplicate.match_score,
                "cost_usd": outcome.cost_usd,
                "duration_ms": elapsed_ms,
            },
            suggestion_id=outcome.suggestion_id,
            resource_id=outcome.resource_id,
        )
        self._observability.increment("verification.outcomes", tags={"action": outcome.action})
        self._observability.record_timing("verification.duration", elapsed_ms)


__all__ = ["VerificationRunner", "VerificationOutcome"]
