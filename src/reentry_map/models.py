"""Pydantic models describing suggestions, resources and verification outcomes."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SuggestionStatus(str, Enum):
    """Lifecycle states of a resource suggestion."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_ATTENTION = "needs_attention"


class ResourceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class VerificationStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"


class Decision(str, Enum):
    """Outcome of the verification decision engine."""

    AUTO_APPROVE = "auto_approve"
    AUTO_REJECT = "auto_reject"
    FLAG_FOR_HUMAN = "flag_for_human"


class AddressType(str, Enum):
    """How a resource's location is published."""

    PHYSICAL = "physical"
    CONFIDENTIAL = "confidential"
    REGIONAL = "regional"
    ONLINE = "online"
    MOBILE = "mobile"

    @property
    def requires_coordinates(self) -> bool:
        return self in (AddressType.PHYSICAL, AddressType.CONFIDENTIAL)


class ClosureStatus(str, Enum):
    TEMPORARY = "temporary"
    PERMANENT = "permanent"


class CheckName(str, Enum):
    URL_REACHABLE = "url_reachable"
    PHONE_VALID = "phone_valid"
    ADDRESS_GEOCODABLE = "address_geocodable"
    WEBSITE_CONTENT_MATCHES = "website_content_matches"


class DuplicateAction(str, Enum):
    SKIP = "skip"
    UPDATE = "update"
    PROCEED = "proceed"


class VerificationType(str, Enum):
    INITIAL = "initial"
    PERIODIC = "periodic"
    TRIGGERED = "triggered"


class EventType(str, Enum):
    """Progress feed emitted while a verification run executes."""

    STARTED = "started"
    PROGRESS = "progress"
    COST = "cost"
    COMPLETED = "completed"
    FAILED = "failed"


# Permanent problems: the suggestion is closed for good.
PERMANENT_REJECTION_REASONS = frozenset(
    {
        "duplicate",
        "wrong_service_type",
        "permanently_closed",
        "does_not_exist",
        "wrong_location",
        "spam",
        "insufficient_info",
    }
)

# Recoverable problems: the suggestion waits for a human with structured notes.
ATTENTION_REASONS = frozenset(
    {
        "wrong_name",
        "incomplete_address",
        "temporarily_closed",
        "needs_verification",
        "confidential_address",
        "missing_details",
    }
)

ALLOWED_TRANSITIONS: Dict[SuggestionStatus, frozenset[SuggestionStatus]] = {
    SuggestionStatus.PENDING: frozenset(
        {SuggestionStatus.APPROVED, SuggestionStatus.REJECTED, SuggestionStatus.NEEDS_ATTENTION}
    ),
    SuggestionStatus.NEEDS_ATTENTION: frozenset(
        {SuggestionStatus.APPROVED, SuggestionStatus.REJECTED, SuggestionStatus.NEEDS_ATTENTION}
    ),
    SuggestionStatus.APPROVED: frozenset(),
    SuggestionStatus.REJECTED: frozenset(),
}


def can_transition(current: SuggestionStatus, target: SuggestionStatus, *, human: bool) -> bool:
    """Return True when ``current -> target`` is permitted for the given actor kind.

    Suggestions in ``needs_attention`` only move when a human acts on them.
    """

    if target not in ALLOWED_TRANSITIONS[current]:
        return False
    if current is SuggestionStatus.NEEDS_ATTENTION and not human:
        return False
    return True


# ---------------------------------------------------------------------------
# Candidate + resource records
# ---------------------------------------------------------------------------


_TEXT_FIELDS = (
    "name",
    "address",
    "city",
    "state",
    "zip",
    "phone",
    "email",
    "website",
    "description",
    "primary_category",
)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class CandidateFields(BaseModel):
    """Descriptive fields shared by suggestions, corrections and resources."""

    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    primary_category: Optional[str] = None
    services_offered: List[str] = Field(default_factory=list)
    hours: Dict[str, str] | str | None = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address_type: AddressType = AddressType.PHYSICAL
    service_area: Optional[Dict[str, Any]] = None

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("services_offered", mode="before")
    @classmethod
    def _coerce_services(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class CandidateSubmission(CandidateFields):
    """Validated input accepted by ``submit_candidate``."""

    discovered_via: str = "manual"
    source_url: Optional[str] = None
    source_name: Optional[str] = None
    discovery_notes: Optional[str] = None
    submitted_by: Optional[str] = None

    @model_validator(mode="after")
    def _require_minimum_fields(self) -> "CandidateSubmission":
        if not self.name:
            raise ValueError("name is required")
        if not (self.address or self.website or self.phone):
            raise ValueError("at least one of address, website or phone is required")
        if not (self.discovery_notes and self.discovery_notes.strip()):
            raise ValueError("discovery_notes must describe how the resource was found")
        return self


class ResourceCandidate(CandidateFields):
    """A stored suggestion awaiting (or past) a verification decision."""

    id: str
    status: SuggestionStatus = SuggestionStatus.PENDING
    discovered_via: Optional[str] = None
    source_url: Optional[str] = None
    source_name: Optional[str] = None
    discovery_notes: Optional[str] = None
    submitted_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    closure_status: Optional[ClosureStatus] = None
    correction_notes: Optional[str] = None
    review_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    resource_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChangeLogEntry(BaseModel):
    """One immutable provenance entry on a resource."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    actor: str
    source: str
    action: str
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    verification_score: Optional[float] = None


class Resource(CandidateFields):
    """A published directory entry."""

    id: str
    suggestion_id: Optional[str] = None
    status: ResourceStatus = ResourceStatus.ACTIVE
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    verification_confidence: Optional[float] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    verification_source: Optional[str] = None
    correction_notes: Optional[str] = None
    change_log: List[ChangeLogEntry] = Field(default_factory=list)
    parent_resource_id: Optional[str] = None
    org_name: Optional[str] = None
    location_name: Optional[str] = None
    is_parent: bool = False
    closure_status: Optional[ClosureStatus] = None
    next_verification_at: Optional[datetime] = None
    source: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Corrections(BaseModel):
    """Admin-supplied field overrides applied on approval. Unset fields keep the suggestion value."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    primary_category: Optional[str] = None
    services_offered: Optional[List[str]] = None
    hours: Dict[str, str] | str | None = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def overrides(self) -> Dict[str, Any]:
        """Return only the fields the admin actually supplied."""

        return self.model_dump(exclude_none=True)


# ---------------------------------------------------------------------------
# Verification outcomes
# ---------------------------------------------------------------------------


class VerificationCheckResult(BaseModel):
    """Outcome of one independent field check."""

    model_config = ConfigDict(frozen=True)

    name: CheckName
    passed: bool
    confidence: float = Field(ge=0.0, le=1.0)
    details: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    cost_usd: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: Optional[float] = None

    @property
    def inconclusive(self) -> bool:
        """True when the collaborator behind the check could not answer."""

        return self.error is not None


class FieldConflict(BaseModel):
    """A submitted value that disagrees with what an external source shows."""

    field: str
    submitted: str
    found: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: str


class VerificationDecision(BaseModel):
    """Combined score and decision for one verification run."""

    overall_score: float
    decision: Decision
    reason: str
    checks: Dict[str, VerificationCheckResult] = Field(default_factory=dict)

    @property
    def total_cost_usd(self) -> float:
        return round(sum(check.cost_usd for check in self.checks.values()), 6)

    def geocoded_coordinates(self) -> tuple[float, float] | None:
        """Return coordinates recorded by a passing geocode check, if any."""

        check = self.checks.get(CheckName.ADDRESS_GEOCODABLE.value)
        if check is None or not check.passed:
            return None
        latitude = check.details.get("latitude")
        longitude = check.details.get("longitude")
        if latitude is None or longitude is None:
            return None
        return float(latitude), float(longitude)


class DuplicateCheckResult(BaseModel):
    is_duplicate: bool
    suggested_action: DuplicateAction
    existing_resource: Optional[Resource] = None
    match_score: float = 0.0
    match_type: Optional[str] = None


class QueueFailure(BaseModel):
    suggestion_id: str
    name: Optional[str] = None
    error: str


class QueueSummary(BaseModel):
    """Counters returned by one pass over the verification queue."""

    processed: int = 0
    approved: int = 0
    flagged: int = 0
    rejected: int = 0
    duplicates: int = 0
    errors: int = 0
    total_cost_usd: float = 0.0
    failures: List[QueueFailure] = Field(default_factory=list)


__all__ = [
    "SuggestionStatus",
    "ResourceStatus",
    "VerificationStatus",
    "Decision",
    "AddressType",
    "ClosureStatus",
    "CheckName",
    "DuplicateAction",
    "VerificationType",
    "EventType",
    "PERMANENT_REJECTION_REASONS",
    "ATTENTION_REASONS",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "CandidateFields",
    "CandidateSubmission",
    "ResourceCandidate",
    "ChangeLogEntry",
    "Resource",
    "Corrections",
    "VerificationCheckResult",
    "VerificationDecision",
    "DuplicateCheckResult",
    "QueueFailure",
    "QueueSummary",
]
