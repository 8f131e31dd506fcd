"""FastAPI router accepting resource suggestions from contributors."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from reentry_map.api.auth import require_token
from reentry_map.api.dependencies import get_services
from reentry_map.models import AddressType
from reentry_map.services.factories import VerificationServices

router = APIRouter(prefix="/suggestions", tags=["suggestions"])


class SuggestionRequest(BaseModel):
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
    discovered_via: str = "manual"
    source_url: Optional[str] = None
    source_name: Optional[str] = None
    discovery_notes: Optional[str] = None
    submitted_by: Optional[str] = None


class SuggestionBatchRequest(BaseModel):
    suggestions: List[SuggestionRequest]


def _submission(payload: SuggestionRequest, user: Dict[str, str]) -> Dict[str, Any]:
    submission = payload.model_dump()
    submission["submitted_by"] = submission.get("submitted_by") or user.get("username") or "unknown"
    return submission


@router.post("/", summary="Submit a resource suggestion", status_code=201)
def submit_suggestion(
    payload: SuggestionRequest,
    user=Depends(require_token),
    services: VerificationServices = Depends(get_services),
):
    suggestion_id = services.lifecycle.submit_candidate(_submission(payload, user))
    return {"suggestion_id": suggestion_id, "status": "pending"}


@router.post("/batch", summary="Submit several resource suggestions", status_code=201)
def submit_suggestion_batch(
    payload: SuggestionBatchRequest,
    user=Depends(require_token),
    services: VerificationServices = Depends(get_services),
):
    result = services.lifecycle.submit_batch([_submission(item, user) for item in payload.suggestions])
    return {**result, "count": len(result["submitted"])}


@router.get("/{suggestion_id}", summary="Fetch a suggestion and its review state")
def get_suggestion(
    suggestion_id: str,
    user=Depends(require_token),
    services: VerificationServices = Depends(get_services),
):
    candidate = services.suggestion_store.get(suggestion_id)
    if candidate is None:
        raise HTTPException(status_code=404, detail="Suggestion not found")
    return candidate.model_dump(mode="json")
