"""Duplicate detection for incoming resource candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from reentry_map.models import CandidateFields, DuplicateAction, DuplicateCheckResult, Resource
from reentry_map.normalization.normalizer import (
    normalize_address,
    normalize_name,
    normalize_state,
    normalize_text,
    phone_digits,
    similarity,
)
from reentry_map.settings import get_settings
from reentry_map.store.resource_store import ResourceStore

LOGGER = logging.getLogger(__name__)

# Fields an ``update`` merge may copy from the candidate onto the existing resource.
MERGEABLE_FIELDS = (
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
    "hours",
    "latitude",
    "longitude",
)

_NAME_WEIGHT = 0.5
_ADDRESS_WEIGHT = 0.35
_PHONE_WEIGHT = 0.15


@dataclass(slots=True)
class _Comparison:
    resource: Resource
    name_exact: bool
    name_similarity: float
    address_exact: bool
    address_similarity: float
    phone_match: bool
    address_known: bool = True
    phone_known: bool = True

    @property
    def score(self) -> float:
        """Weighted similarity over the signals both records carry."""

        weighted = _NAME_WEIGHT * self.name_similarity
        total = _NAME_WEIGHT
        if self.address_known:
            weighted += _ADDRESS_WEIGHT * self.address_similarity
            total += _ADDRESS_WEIGHT
        if self.phone_known:
            weighted += _PHONE_WEIGHT * (1.0 if self.phone_match else 0.0)
            total += _PHONE_WEIGHT
        return round(weighted / total, 4)


def _same_city(candidate: CandidateFields, resource: Resource) -> bool:
    if not candidate.city or not resource.city:
        return True
    return normalize_text(candidate.city) == normalize_text(resource.city)


def _same_state(candidate: CandidateFields, resource: Resource) -> bool:
    if not candidate.state or not resource.state:
        return True
    return normalize_state(candidate.state) == normalize_state(resource.state)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def merge_candidate_fields(existing: Resource, candidate: CandidateFields) -> Dict[str, Any]:
    """Return the field changes that merging ``candidate`` into ``existing`` implies.

    Non-empty candidate values win; an empty candidate value never replaces
    a populated field. ``services_offered`` is unioned in order.
    """

    changes: Dict[str, Any] = {}
    for field in MERGEABLE_FIELDS:
        incoming = getattr(candidate, field)
        if _is_empty(incoming):
            continue
        if incoming != getattr(existing, field):
            changes[field] = incoming

    merged_services = list(existing.services_offered)
    for service in candidate.services_offered:
        if service not in merged_services:
            merged_services.append(service)
    if merged_services != list(existing.services_offered):
        changes["services_offered"] = merged_services
    return changes


class DuplicateDetector:
    """Decide whether a candidate should be skipped, merged, or created.

    A ``skip`` requires two independent identity signals: the normalized
    name must match AND either the normalized street address or the phone
    number must match. Near matches (similar name plus matching address or
    phone) are routed to ``update``.
    """

    def __init__(
        self,
        *,
        resource_store: ResourceStore,
        name_threshold: Optional[float] = None,
        address_threshold: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self._store = resource_store
        self._name_threshold = (
            name_threshold if name_threshold is not None else settings.dedup.name_similarity_threshold
        )
        self._address_threshold = (
            address_threshold if address_threshold is not None else settings.dedup.address_similarity_threshold
        )

    def check_for_duplicate(
        self,
        candidate: CandidateFields,
        *,
        existing: Optional[Iterable[Resource]] = None,
    ) -> DuplicateCheckResult:
        """Compare ``candidate`` against active resources.

        Args:
            candidate: Incoming suggestion fields.
            existing: Optional pre-fetched resources; defaults to every active
                resource. Location is judged per pair, so a resource stored
                without a state, or with the state spelled out, still matches.
        """

        pool = list(existing) if existing is not None else self._store.list_active()
        comparisons = [self._compare(candidate, resource) for resource in pool]

        for comparison in comparisons:
            if comparison.name_exact and (comparison.address_exact or comparison.phone_match):
                match_type = "exact_name_address" if comparison.address_exact else "exact_name_phone"
                LOGGER.info(
                    "Exact duplicate name=%s resource_id=%s match_type=%s",
                    candidate.name,
                    comparison.resource.id,
                    match_type,
                )
                return DuplicateCheckResult(
                    is_duplicate=True,
                    suggested_action=DuplicateAction.SKIP,
                    existing_resource=comparison.resource,
                    match_score=1.0,
                    match_type=match_type,
                )

        near = [
            comparison
            for comparison in comparisons
            if comparison.name_similarity >= self._name_threshold
            and (comparison.address_similarity >= self._address_threshold or comparison.phone_match)
        ]
        if near:
            best = max(near, key=lambda item: item.score)
            match_type = (
                "similar_name_address" if best.address_similarity >= self._address_threshold else "similar_name_phone"
            )
            LOGGER.info(
                "Near duplicate name=%s resource_id=%s score=%.3f",
                candidate.name,
                best.resource.id,
                best.score,
            )
            return DuplicateCheckResult(
                is_duplicate=True,
                suggested_action=DuplicateAction.UPDATE,
                existing_resource=best.resource,
                match_score=best.score,
                match_type=match_type,
            )

        best_score = max((comparison.score for comparison in comparisons), default=0.0)
        return DuplicateCheckResult(
            is_duplicate=False,
            suggested_action=DuplicateAction.PROCEED,
            match_score=best_score,
        )

    def _compare(self, candidate: CandidateFields, resource: Resource) -> _Comparison:
        candidate_name = normalize_name(candidate.name)
        resource_name = normalize_name(resource.name)
        same_place = _same_city(candidate, resource) and _same_state(candidate, resource)

        candidate_address = normalize_address(candidate.address)
        resource_address = normalize_address(resource.address)
        address_similarity = similarity(candidate_address, resource_address) if same_place else 0.0

        candidate_phone = phone_digits(candidate.phone)
        resource_phone = phone_digits(resource.phone)
        phone_match = len(candidate_phone) == 10 and candidate_phone == resource_phone

        return _Comparison(
            resource=resource,
            name_exact=bool(candidate_name) and candidate_name == resource_name,
            name_similarity=similarity(candidate_name, resource_name),
            address_exact=bool(candidate_address) and same_place and candidate_address == resource_address,
            address_similarity=address_similarity,
            phone_match=phone_match,
            address_known=bool(candidate_address and resource_address),
            phone_known=len(candidate_phone) == 10 and len(resource_phone) == 10,
        )


__all__ = ["DuplicateDetector", "merge_candidate_fields", "MERGEABLE_FIELDS"]
