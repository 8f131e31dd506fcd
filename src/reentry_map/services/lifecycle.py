"""State machine that turns verification decisions and human reviews into stored outcomes."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from reentry_map.errors import (
    GeocodingFailed,
    InvalidReason,
    InvalidTransition,
    PersistenceConflict,
    ResourceNotFound,
    SuggestionNotFound,
    ValidationError,
)
from reentry_map.models import (
    ATTENTION_REASONS,
    PERMANENT_REJECTION_REASONS,
    AddressType,
    CandidateFields,
    CandidateSubmission,
    ChangeLogEntry,
    ClosureStatus,
    Corrections,
    Decision,
    EventType,
    Resource,
    ResourceCandidate,
    ResourceStatus,
    SuggestionStatus,
    VerificationDecision,
    VerificationStatus,
    can_transition,
)
from reentry_map.normalization.normalizer import enrich_address, next_verification_date
from reentry_map.normalization.provenance import extract_verification_source, has_documented_source
from reentry_map.normalization.reference_data import FIELD_CADENCE_DAYS
from reentry_map.services.deduplication import merge_candidate_fields
from reentry_map.services.events import NullEventSink, VerificationEventSink
from reentry_map.services.geocoding import Geocoder
from reentry_map.services.grouping import ParentChildGrouper
from reentry_map.settings import get_settings
from reentry_map.store.resource_store import ResourceStore
from reentry_map.store.suggestion_store import SuggestionStore
from reentry_map.store.verification_log_store import VerificationLogStore

LOGGER = logging.getLogger(__name__)

SYSTEM_ACTOR = "verification_agent"
AUTOMATED_SOURCE = "automated_verification"

_FIELD_NAMES = frozenset(CandidateFields.model_fields)
_LOCATION_FIELDS = ("address", "city", "state", "zip")
_CLOSURE_DEFAULTS = {
    "permanently_closed": ClosureStatus.PERMANENT,
    "temporarily_closed": ClosureStatus.TEMPORARY,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validation_message(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "__root__")
        message = str(error.get("msg", "invalid value")).removeprefix("Value error, ")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def _field_values(model: CandidateFields) -> Dict[str, Any]:
    """JSON-friendly candidate columns of ``model``."""

    return model.model_dump(mode="json", include=set(_FIELD_NAMES))


def _closure_value(closure: ClosureStatus | str | None) -> Optional[str]:
    if closure is None:
        return None
    return ClosureStatus(closure).value


def _cadence_fields(values: Mapping[str, Any]) -> List[str]:
    return [name for name in FIELD_CADENCE_DAYS if values.get(name) not in (None, "", [], {})]


class SuggestionLifecycleManager:
    """Own every status change of a suggestion and every resource it produces.

    Automatic transitions only start from ``pending``; suggestions waiting in
    ``needs_attention`` can only be moved by a human reviewer. Approvals claim
    the suggestion with a compare-and-set update before inserting the
    resource, so two concurrent runs cannot both publish it.
    """

    def __init__(
        self,
        *,
        suggestion_store: SuggestionStore,
        resource_store: ResourceStore,
        log_store: VerificationLogStore,
        geocoder: Geocoder,
        grouper: ParentChildGrouper | None = None,
        events: VerificationEventSink | None = None,
        max_submission_batch: Optional[int] = None,
        geocode_cost_usd: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self._suggestions = suggestion_store
        self._resources = resource_store
        self._logs = log_store
        self._geocoder = geocoder
        self._grouper = grouper
        self._events = events or NullEventSink()
        self._max_submission_batch = (
            max_submission_batch
            if max_submission_batch is not None
            else settings.verification.max_submission_batch
        )
        self._geocode_cost = (
            geocode_cost_usd if geocode_cost_usd is not None else settings.geocoding.cost_per_request_usd
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def submit_candidate(self, fields: CandidateSubmission | Mapping[str, Any]) -> str:
        """Validate and queue a suggestion, returning its id.

        An identical pending suggestion (same name and address) is reused
        instead of queueing a second copy.

        Raises:
            ValidationError: If the name, a contact field or the discovery
                notes are missing.
        """

        if isinstance(fields, CandidateSubmission):
            submission = fields
        else:
            try:
                submission = CandidateSubmission.model_validate(dict(fields))
            except PydanticValidationError as exc:
                raise ValidationError(_validation_message(exc)) from exc

        existing_id = self._suggestions.find_pending_duplicate(
            name=submission.name or "",
            address=submission.address,
        )
        if existing_id:
            LOGGER.info("Reusing pending suggestion suggestion_id=%s name=%s", existing_id, submission.name)
            return existing_id
        return self._suggestions.create(submission)

    def submit_batch(self, items: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        """Submit several suggestions; invalid items are reported, not raised."""

        if len(items) > self._max_submission_batch:
            raise ValidationError(
                f"At most {self._max_submission_batch} suggestions can be submitted at once (got {len(items)})"
            )
        submitted: List[str] = []
        errors: List[Dict[str, Any]] = []
        for index, item in enumerate(items):
            try:
                submitted.append(self.submit_candidate(item))
            except ValidationError as exc:
                errors.append({"index": index, "name": item.get("name"), "error": str(exc)})
        LOGGER.info("Batch submission submitted=%s errors=%s", len(submitted), len(errors))
        return {"submitted": submitted, "errors": errors}

    # ------------------------------------------------------------------
    # Automatic outcomes
    # ------------------------------------------------------------------
    def approve(self, suggestion_id: str, decision: VerificationDecision) -> str:
        """Publish a pending suggestion the decision engine approved. Returns the resource id.

        Raises:
            ValidationError: If the suggestion cannot be placed on the map
                (e.g. a physical resource without a street address).
            PersistenceConflict: If another run already processed it.
        """

        candidate = self._require(suggestion_id)
        self._check_transition(candidate, SuggestionStatus.APPROVED, human=False)
        coordinates = self._known_coordinates(candidate) or decision.geocoded_coordinates()
        values = self._place(
            _field_values(candidate),
            address_type=candidate.address_type,
            service_area=candidate.service_area,
            coordinates=coordinates,
            suggestion_id=suggestion_id,
        )
        return self._publish(
            candidate,
            values,
            from_statuses=[SuggestionStatus.PENDING],
            actor=SYSTEM_ACTOR,
            action="created",
            entry_source=AUTOMATED_SOURCE,
            verification_score=decision.overall_score,
            verification_source=AUTOMATED_SOURCE,
            review_notes=decision.reason,
            changed_fields=_cadence_fields(values),
        )

    def auto_reject(self, suggestion_id: str, decision: VerificationDecision, *, reason: str = "insufficient_info") -> None:
        """Close a pending suggestion the decision engine rejected."""

        if reason not in PERMANENT_REJECTION_REASONS:
            raise InvalidReason(f"Invalid rejection reason '{reason}'")
        self._automatic_transition(
            suggestion_id,
            SuggestionStatus.REJECTED,
            rejection_reason=reason,
            review_notes=decision.reason,
        )
        self._logs.record_action(
            actor=SYSTEM_ACTOR,
            action="auto_reject",
            payload={"reason": reason, "score": decision.overall_score, "decision_reason": decision.reason},
            suggestion_id=suggestion_id,
        )

    def flag_for_human(
        self,
        suggestion_id: str,
        reason_text: str,
        *,
        decision: VerificationDecision | None = None,
        reason: str = "needs_verification",
    ) -> None:
        """Move a pending suggestion to ``needs_attention`` for a reviewer."""

        if reason not in ATTENTION_REASONS:
            raise InvalidReason(f"Invalid attention reason '{reason}'")
        self._automatic_transition(
            suggestion_id,
            SuggestionStatus.NEEDS_ATTENTION,
            rejection_reason=reason,
            review_notes=reason_text,
        )
        payload: Dict[str, Any] = {"reason": reason, "notes": reason_text}
        if decision is not None:
            payload["score"] = decision.overall_score
        self._logs.record_action(
            actor=SYSTEM_ACTOR,
            action="flag_for_human",
            payload=payload,
            suggestion_id=suggestion_id,
        )

    def close_as_duplicate(self, suggestion_id: str, resource_id: str, match_score: float) -> None:
        """Close a suggestion that exactly duplicates an active resource."""

        self._automatic_transition(
            suggestion_id,
            SuggestionStatus.REJECTED,
            rejection_reason="duplicate",
            resource_id=resource_id,
            review_notes=f"Duplicate of resource {resource_id} (match score {match_score:.2f})",
        )

    def merge_into_existing(self, suggestion_id: str, resource_id: str, decision: VerificationDecision) -> str:
        """Fold an approved near-duplicate into the resource it matched. Returns ``resource_id``."""

        candidate = self._require(suggestion_id)
        existing = self._require_resource(resource_id)
        self._check_transition(candidate, SuggestionStatus.APPROVED, human=False)

        changes = merge_candidate_fields(existing, candidate)
        relocated = any(name in changes for name in _LOCATION_FIELDS) and "latitude" not in changes
        if relocated and existing.address_type.requires_coordinates:
            merged = existing.model_copy(update=changes)
            coordinates = decision.geocoded_coordinates() or self._geocode(
                enrich_address(merged.address, merged.city, merged.state, merged.zip),
                suggestion_id=suggestion_id,
            )
            changes["latitude"], changes["longitude"] = coordinates

        now = _utcnow()
        claimed = self._suggestions.transition(
            suggestion_id,
            from_statuses=[SuggestionStatus.PENDING],
            to_status=SuggestionStatus.APPROVED,
            resource_id=resource_id,
            reviewed_by=SYSTEM_ACTOR,
            reviewed_at=now,
            review_notes=f"Merged into resource {resource_id}: {decision.reason}",
        )
        if not claimed:
            raise PersistenceConflict(f"Suggestion {suggestion_id} was already processed")

        before = {name: value for name, value in existing.model_dump(mode="json").items() if name in changes}
        entry = ChangeLogEntry(
            timestamp=now,
            actor=SYSTEM_ACTOR,
            source=AUTOMATED_SOURCE,
            action="merged_suggestion" if changes else "confirmed_by_suggestion",
            before=before or None,
            after=dict(changes) or None,
            notes=f"Suggestion {suggestion_id}: {decision.reason}",
            verification_score=decision.overall_score,
        )
        update = {
            **changes,
            "verification_status": VerificationStatus.VERIFIED.value,
            "verification_confidence": decision.overall_score,
            "verified_at": now,
            "verified_by": SYSTEM_ACTOR,
            "next_verification_at": next_verification_date(changes, now=now),
        }
        try:
            self._resources.update(resource_id, update, entry=entry)
        except Exception:
            self._release_claim(candidate)
            raise
        self._notify(suggestion_id, SuggestionStatus.APPROVED, resource_id=resource_id)
        return resource_id

    # ------------------------------------------------------------------
    # Human review
    # ------------------------------------------------------------------
    def approve_with_corrections(
        self,
        suggestion_id: str,
        *,
        correction_notes: str,
        actor: str,
        corrections: Corrections | Mapping[str, Any] | None = None,
        address_type: AddressType | str | None = None,
        service_area: Optional[Dict[str, Any]] = None,
        closure_status: ClosureStatus | str | None = None,
    ) -> str:
        """Publish a suggestion after a reviewer corrected it. Returns the resource id.

        Raises:
            ValidationError: If ``correction_notes`` cite no URL, domain or
                verification method, or the location cannot be placed.
            GeocodingFailed: If a physical or confidential location cannot be
                geocoded.
            PersistenceConflict: If the suggestion was approved concurrently.
        """

        if not has_documented_source(correction_notes):
            raise ValidationError(
                "correction_notes must document a source: a URL, a domain, or the verification method used"
            )
        if isinstance(corrections, Corrections) or corrections is None:
            patch = corrections or Corrections()
        else:
            try:
                patch = Corrections.model_validate(dict(corrections))
            except PydanticValidationError as exc:
                raise ValidationError(_validation_message(exc)) from exc
        try:
            resolved_type = AddressType(address_type) if address_type is not None else None
        except ValueError as exc:
            raise ValidationError(f"Unknown address_type '{address_type}'") from exc

        candidate = self._require(suggestion_id)
        self._check_transition(candidate, SuggestionStatus.APPROVED, human=True)

        overrides = patch.overrides()
        values = _field_values(candidate)
        values.update(patch.model_dump(mode="json", exclude_none=True))
        if any(name in overrides for name in _LOCATION_FIELDS) and "latitude" not in overrides:
            values["latitude"] = values["longitude"] = None
        coordinates = None
        if values.get("latitude") is not None and values.get("longitude") is not None:
            coordinates = (float(values["latitude"]), float(values["longitude"]))

        placed = self._place(
            values,
            address_type=resolved_type or candidate.address_type,
            service_area=service_area if service_area is not None else candidate.service_area,
            coordinates=coordinates,
            suggestion_id=suggestion_id,
        )
        source = extract_verification_source(correction_notes)
        resource_id = self._publish(
            candidate,
            placed,
            from_statuses=[SuggestionStatus.PENDING, SuggestionStatus.NEEDS_ATTENTION],
            actor=actor,
            action="created_with_corrections" if overrides else "created",
            entry_source="admin_review",
            verification_score=1.0,
            verification_source=source,
            review_notes=correction_notes,
            changed_fields=list(overrides),
            correction_notes=correction_notes,
            closure_status=closure_status,
            before={name: _field_values(candidate).get(name) for name in overrides} or None,
        )
        self._logs.record_action(
            actor=actor,
            action="approve_with_corrections",
            payload={
                "corrections": patch.model_dump(mode="json", exclude_none=True),
                "address_type": placed["address_type"],
                "verification_source": source,
                "correction_notes": correction_notes,
            },
            suggestion_id=suggestion_id,
            resource_id=resource_id,
        )
        return resource_id

    def reject(
        self,
        suggestion_id: str,
        reason: str,
        *,
        actor: str,
        notes: Optional[str] = None,
        closure_status: ClosureStatus | str | None = None,
    ) -> SuggestionStatus:
        """Apply a reviewer's rejection and return the resulting status.

        Permanent reasons close the suggestion as ``rejected``; recoverable
        reasons park it in ``needs_attention`` and require ``notes``.
        """

        if reason in PERMANENT_REJECTION_REASONS:
            target = SuggestionStatus.REJECTED
        elif reason in ATTENTION_REASONS:
            target = SuggestionStatus.NEEDS_ATTENTION
            if not notes or not notes.strip():
                raise ValidationError(f"notes are required when flagging a suggestion as '{reason}'")
        else:
            raise InvalidReason(f"Invalid rejection reason '{reason}'")

        candidate = self._require(suggestion_id)
        self._check_transition(candidate, target, human=True)
        closure = _closure_value(closure_status) or _closure_value(_CLOSURE_DEFAULTS.get(reason))
        updated = self._suggestions.transition(
            suggestion_id,
            from_statuses=[candidate.status],
            to_status=target,
            rejection_reason=reason,
            review_notes=notes,
            reviewed_by=actor,
            reviewed_at=_utcnow(),
            closure_status=closure,
        )
        if not updated:
            raise PersistenceConflict(f"Suggestion {suggestion_id} changed while it was being reviewed")
        self._logs.record_action(
            actor=actor,
            action="reject" if target is SuggestionStatus.REJECTED else "needs_attention",
            payload={"reason": reason, "notes": notes, "closure_status": closure},
            suggestion_id=suggestion_id,
        )
        self._notify(suggestion_id, target)
        return target

    # ------------------------------------------------------------------
    # Published resources
    # ------------------------------------------------------------------
    def record_reverification(self, resource_id: str, decision: VerificationDecision) -> Resource:
        """Store the outcome of a periodic re-check on a published resource."""

        resource = self._require_resource(resource_id)
        now = _utcnow()
        verified = decision.decision is Decision.AUTO_APPROVE
        status = VerificationStatus.VERIFIED if verified else VerificationStatus.UNVERIFIED
        changes: Dict[str, Any] = {
            "verification_status": status.value,
            "verification_confidence": decision.overall_score,
            "verified_at": now,
            "verified_by": SYSTEM_ACTOR,
            "next_verification_at": next_verification_date([], now=now),
        }
        entry = ChangeLogEntry(
            timestamp=now,
            actor=SYSTEM_ACTOR,
            source="periodic_verification",
            action="reverified",
            before={
                "verification_status": resource.verification_status.value,
                "verification_confidence": resource.verification_confidence,
            },
            after={"verification_status": status.value, "verification_confidence": decision.overall_score},
            notes=decision.reason,
            verification_score=decision.overall_score,
        )
        updated = self._resources.update(resource_id, changes, entry=entry)
        if not verified:
            self._logs.record_action(
                actor=SYSTEM_ACTOR,
                action="reverification_flagged",
                payload={"decision": decision.decision.value, "reason": decision.reason},
                resource_id=resource_id,
            )
        return updated

    def deactivate_resource(
        self,
        resource_id: str,
        *,
        actor: str,
        reason: str,
        closure_status: ClosureStatus | str | None = None,
    ) -> Resource:
        """Logically delete a resource; its row and change log are kept."""

        if not reason or not reason.strip():
            raise ValidationError("A reason is required to deactivate a resource")
        resource = self._require_resource(resource_id)
        if resource.status is ResourceStatus.INACTIVE:
            raise InvalidTransition(f"Resource {resource_id} is already inactive")
        closure = _closure_value(closure_status)
        entry = ChangeLogEntry(
            timestamp=_utcnow(),
            actor=actor,
            source="admin_review",
            action="deactivated",
            before={"status": resource.status.value},
            after={"status": ResourceStatus.INACTIVE.value, "closure_status": closure},
            notes=reason,
        )
        updated = self._resources.update(
            resource_id,
            {"status": ResourceStatus.INACTIVE.value, "closure_status": closure},
            entry=entry,
        )
        self._logs.record_action(
            actor=actor,
            action="deactivate_resource",
            payload={"reason": reason, "closure_status": closure},
            resource_id=resource_id,
        )
        return updated

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require(self, suggestion_id: str) -> ResourceCandidate:
        candidate = self._suggestions.get(suggestion_id)
        if candidate is None:
            raise SuggestionNotFound(f"Suggestion {suggestion_id} not found")
        return candidate

    def _require_resource(self, resource_id: str) -> Resource:
        resource = self._resources.get(resource_id)
        if resource is None:
            raise ResourceNotFound(f"Resource {resource_id} not found")
        return resource

    @staticmethod
    def _check_transition(candidate: ResourceCandidate, target: SuggestionStatus, *, human: bool) -> None:
        if not can_transition(candidate.status, target, human=human):
            raise InvalidTransition(
                f"Suggestion {candidate.id} cannot move from {candidate.status.value} to {target.value}"
            )

    @staticmethod
    def _known_coordinates(candidate: CandidateFields) -> Optional[tuple[float, float]]:
        if candidate.latitude is None or candidate.longitude is None:
            return None
        return candidate.latitude, candidate.longitude

    def _automatic_transition(self, suggestion_id: str, target: SuggestionStatus, **fields: Any) -> None:
        candidate = self._require(suggestion_id)
        self._check_transition(candidate, target, human=False)
        updated = self._suggestions.transition(
            suggestion_id,
            from_statuses=[SuggestionStatus.PENDING],
            to_status=target,
            reviewed_by=SYSTEM_ACTOR,
            reviewed_at=_utcnow(),
            **fields,
        )
        if not updated:
            raise PersistenceConflict(f"Suggestion {suggestion_id} was already processed")
        self._notify(suggestion_id, target, resource_id=fields.get("resource_id"))

    def _place(
        self,
        values: Dict[str, Any],
        *,
        address_type: AddressType,
        service_area: Optional[Dict[str, Any]],
        coordinates: Optional[tuple[float, float]],
        suggestion_id: str,
    ) -> Dict[str, Any]:
        """Return ``values`` with the location columns required by ``address_type``."""

        placed = dict(values)
        placed["address_type"] = address_type.value
        placed["service_area"] = service_area or values.get("service_area")

        if address_type is AddressType.PHYSICAL:
            if not placed.get("address"):
                raise ValidationError("A street address is required for a physical resource")
            if coordinates is None:
                coordinates = self._geocode(
                    enrich_address(placed["address"], placed.get("city"), placed.get("state"), placed.get("zip")),
                    suggestion_id=suggestion_id,
                )
            placed["latitude"], placed["longitude"] = coordinates
        elif address_type is AddressType.CONFIDENTIAL:
            city, state = placed.get("city"), placed.get("state")
            if not city or not state:
                raise ValidationError("A city and state are required for a confidential resource")
            # Only the city centre is published.
            placed["latitude"], placed["longitude"] = self._geocode(f"{city}, {state}", suggestion_id=suggestion_id)
            placed["address"] = None
        else:
            if not placed["service_area"]:
                raise ValidationError(f"service_area is required for a {address_type.value} resource")
            placed["latitude"] = placed["longitude"] = None
        return placed

    def _geocode(self, query: str, *, suggestion_id: str) -> tuple[float, float]:
        result = self._geocoder.geocode(query)
        self._logs.record_usage(
            operation="geocode_on_approval",
            provider=getattr(self._geocoder, "name", "geocoder"),
            cost_usd=self._geocode_cost,
            suggestion_id=suggestion_id,
        )
        if result is None:
            raise GeocodingFailed(f"Could not geocode '{query}'")
        return result.latitude, result.longitude

    def _publish(
        self,
        candidate: ResourceCandidate,
        values: Dict[str, Any],
        *,
        from_statuses: Iterable[SuggestionStatus],
        actor: str,
        action: str,
        entry_source: str,
        verification_score: float,
        verification_source: str,
        review_notes: Optional[str],
        changed_fields: Iterable[str],
        correction_notes: Optional[str] = None,
        closure_status: ClosureStatus | str | None = None,
        before: Optional[Dict[str, Any]] = None,
    ) -> str:
        resource_id = str(uuid.uuid4())
        now = _utcnow()
        closure = _closure_value(closure_status)
        claimed = self._suggestions.transition(
            candidate.id,
            from_statuses=from_statuses,
            to_status=SuggestionStatus.APPROVED,
            resource_id=resource_id,
            reviewed_by=actor,
            reviewed_at=now,
            review_notes=review_notes,
            correction_notes=correction_notes,
            closure_status=closure,
        )
        if not claimed:
            raise PersistenceConflict(f"Suggestion {candidate.id} was already processed")

        try:
            record = dict(values)
            if self._grouper is not None:
                parent = self._grouper.resolve_parent(CandidateFields.model_validate(values), actor=actor)
                if parent is not None:
                    record.update(self._grouper.child_fields(candidate, parent))
            record.update(
                {
                    "suggestion_id": candidate.id,
                    "status": ResourceStatus.ACTIVE.value,
                    "verification_status": VerificationStatus.VERIFIED.value,
                    "verification_confidence": verification_score,
                    "verified_at": now,
                    "verified_by": actor,
                    "verification_source": verification_source,
                    "correction_notes": correction_notes,
                    "closure_status": closure,
                    "next_verification_at": next_verification_date(changed_fields, now=now),
                    "source": candidate.discovered_via or entry_source,
                }
            )
            entry = ChangeLogEntry(
                timestamp=now,
                actor=actor,
                source=entry_source,
                action=action,
                before=before,
                after=dict(values),
                notes=review_notes,
                verification_score=verification_score,
            )
            self._resources.create(record, entry=entry, resource_id=resource_id)
        except Exception:
            LOGGER.warning("Releasing approval claim suggestion_id=%s", candidate.id)
            self._release_claim(candidate)
            raise
        self._notify(candidate.id, SuggestionStatus.APPROVED, resource_id=resource_id)
        return resource_id

    def _release_claim(self, candidate: ResourceCandidate) -> None:
        self._suggestions.transition(
            candidate.id,
            from_statuses=[SuggestionStatus.APPROVED],
            to_status=candidate.status,
            resource_id=candidate.resource_id,
            reviewed_by=candidate.reviewed_by,
            reviewed_at=candidate.reviewed_at,
            review_notes=candidate.review_notes,
            correction_notes=candidate.correction_notes,
            closure_status=_closure_value(candidate.closure_status),
        )

    def _notify(self, suggestion_id: str, status: SuggestionStatus, *, resource_id: Optional[str] = None) -> None:
        self._events.emit(
            EventType.PROGRESS,
            {"step": "status_changed", "status": status.value},
            suggestion_id=suggestion_id,
            resource_id=resource_id,
        )


__all__ = ["SuggestionLifecycleManager", "SYSTEM_ACTOR"]
