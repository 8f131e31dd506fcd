"""Parent/child grouping for organizations that operate several locations."""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from reentry_map.models import AddressType, CandidateFields, ChangeLogEntry, Resource, VerificationStatus
from reentry_map.normalization.normalizer import (
    extract_org_name,
    location_name,
    normalize_address,
    normalize_text,
    org_key,
)
from reentry_map.store.resource_store import ResourceStore
from reentry_map.store.suggestion_store import SuggestionStore

LOGGER = logging.getLogger(__name__)

PARENT_SOURCE = "auto_created_parent"

CandidateT = TypeVar("CandidateT", bound=CandidateFields)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _location_key(candidate: CandidateFields) -> Optional[tuple[str, str]]:
    address = normalize_address(candidate.address)
    if not address:
        return None
    return address, normalize_text(candidate.city)


def detect_parent_child_relationships(candidates: Iterable[CandidateT]) -> Dict[str, List[CandidateT]]:
    """Group candidates that are locations of the same organization.

    Candidates are keyed by their organization root (name with trailing
    location qualifiers removed). Only organizations with at least two
    members at distinct addresses are returned, keyed by the display name
    of the first member's root.
    """

    groups: "OrderedDict[str, List[CandidateT]]" = OrderedDict()
    display: Dict[str, str] = {}
    for candidate in candidates:
        if not candidate.name:
            continue
        key = org_key(candidate.name)
        if not key:
            continue
        groups.setdefault(key, []).append(candidate)
        display.setdefault(key, extract_org_name(candidate.name))

    result: Dict[str, List[CandidateT]] = {}
    for key, members in groups.items():
        locations = {loc for loc in (_location_key(member) for member in members) if loc}
        if len(members) >= 2 and len(locations) >= 2:
            result[display[key]] = members
    return result


def is_sibling_location(candidate: CandidateFields, resource: Resource) -> bool:
    """True when ``candidate`` is a different branch of the organization behind ``resource``.

    Both names must share an organization root, carry different branch labels,
    and point at different street addresses.
    """

    if not candidate.name or not resource.name:
        return False
    if org_key(candidate.name) != org_key(resource.name):
        return False
    org = extract_org_name(candidate.name)
    candidate_branch = location_name(candidate.name, org)
    resource_branch = resource.location_name or location_name(resource.name, extract_org_name(resource.name))
    if not candidate_branch or not resource_branch:
        return False
    if normalize_text(candidate_branch) == normalize_text(resource_branch):
        return False
    return normalize_address(candidate.address) != normalize_address(resource.address)


def _service_cities(members: Sequence[CandidateFields]) -> List[str]:
    cities: List[str] = []
    for member in members:
        if member.city and member.city not in cities:
            cities.append(member.city)
    return cities


class ParentChildGrouper:
    """Resolve (and lazily create) the parent aggregate row for a candidate's organization."""

    def __init__(self, *, resource_store: ResourceStore, suggestion_store: SuggestionStore) -> None:
        self._resources = resource_store
        self._suggestions = suggestion_store

    def resolve_parent(self, candidate: CandidateFields, *, actor: str) -> Optional[Resource]:
        """Return the parent resource ``candidate`` should link to, creating it on first sight.

        Returns ``None`` when the candidate is not part of a multi-location
        organization.
        """

        if not candidate.name:
            return None
        org_name = extract_org_name(candidate.name)
        existing_parent = self._resources.find_parent(org_name)
        if existing_parent is not None:
            return self._extend_service_area(existing_parent, candidate, actor=actor)

        peers = self._peers(candidate, org_name)
        groups = detect_parent_child_relationships([candidate, *peers])
        members = groups.get(org_name)
        if not members:
            return None

        parent = self._create_parent(org_name, members, actor=actor)
        self._link_existing_children(parent, org_name, actor=actor)
        return parent

    def child_fields(self, candidate: CandidateFields, parent: Resource) -> Dict[str, Optional[str]]:
        """Columns that tag a child resource with its organization and branch label."""

        org_name = parent.org_name or parent.name
        return {
            "parent_resource_id": parent.id,
            "org_name": org_name,
            "location_name": location_name(candidate.name or "", org_name),
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _peers(self, candidate: CandidateFields, org_name: str) -> List[CandidateFields]:
        target = org_key(candidate.name or "")
        peers: List[CandidateFields] = []
        for resource in self._resources.list_active(name_prefix=org_name):
            if org_key(resource.name or "") == target:
                peers.append(resource)
        for suggestion in self._suggestions.list_open_by_name_prefix(org_name):
            if suggestion.name == candidate.name and suggestion.address == candidate.address:
                continue
            if org_key(suggestion.name or "") == target:
                peers.append(suggestion)
        return peers

    def _create_parent(self, org_name: str, members: Sequence[CandidateFields], *, actor: str) -> Resource:
        representative = members[0]
        cities = _service_cities(members)
        values = {
            "name": org_name,
            "org_name": org_name,
            "is_parent": True,
            "address": None,
            "city": representative.city,
            "state": representative.state,
            "phone": representative.phone,
            "email": representative.email,
            "website": representative.website,
            "primary_category": representative.primary_category,
            "services_offered": list(representative.services_offered),
            "description": f"{org_name} serves the community through multiple locations.",
            "address_type": AddressType.REGIONAL.value,
            "service_area": {"type": "cities", "values": cities},
            "verification_status": VerificationStatus.UNVERIFIED.value,
            "source": PARENT_SOURCE,
        }
        entry = ChangeLogEntry(
            timestamp=_utcnow(),
            actor=actor,
            source=PARENT_SOURCE,
            action="created_parent",
            after={"name": org_name, "service_area": values["service_area"]},
            notes=f"Aggregate row for {len(members)} locations",
        )
        parent = self._resources.create(values, entry=entry)
        LOGGER.info("Created parent resource resource_id=%s org_name=%s locations=%s", parent.id, org_name, len(members))
        return parent

    def _extend_service_area(self, parent: Resource, candidate: CandidateFields, *, actor: str) -> Resource:
        area = parent.service_area or {"type": "cities", "values": []}
        cities = list(area.get("values") or [])
        if not candidate.city or candidate.city in cities or area.get("type") != "cities":
            return parent
        updated_area = {"type": "cities", "values": [*cities, candidate.city]}
        entry = ChangeLogEntry(
            timestamp=_utcnow(),
            actor=actor,
            source=PARENT_SOURCE,
            action="extended_service_area",
            before={"service_area": area},
            after={"service_area": updated_area},
        )
        return self._resources.update(parent.id, {"service_area": updated_area}, entry=entry)

    def _link_existing_children(self, parent: Resource, org_name: str, *, actor: str) -> None:
        target = org_key(org_name)
        for resource in self._resources.list_active(name_prefix=org_name):
            if resource.parent_resource_id or org_key(resource.name or "") != target:
                continue
            changes = self.child_fields(resource, parent)
            entry = ChangeLogEntry(
                timestamp=_utcnow(),
                actor=actor,
                source=PARENT_SOURCE,
                action="linked_to_parent",
                before={"parent_resource_id": None},
                after=dict(changes),
            )
            self._resources.update(resource.id, changes, entry=entry)


__all__ = [
    "ParentChildGrouper",
    "detect_parent_child_relationships",
    "is_sibling_location",
    "PARENT_SOURCE",
]
