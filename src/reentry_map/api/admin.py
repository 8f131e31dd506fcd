"""Admin endpoints for running verification and reviewing flagged suggestions."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from reentry_map.api.auth import require_admin
from reentry_map.api.dependencies import get_services
from reentry_map.models import AddressType, CandidateFields, ClosureStatus, Corrections, SuggestionStatus
from reentry_map.services.factories import VerificationServices

router = APIRouter(prefix="/admin", tags=["admin"])


class ProcessQueueRequest(BaseModel):
    batch_size: Optional[int] = Field(default=None, ge=1)


class ApproveWithCorrectionsRequest(BaseModel):
    correction_notes: str
    corrections: Optional[Corrections] = None
    address_type: Optional[AddressType] = None
    service_area: Optional[Dict[str, Any]] = None
    closure_status: Optional[ClosureStatus] = None


class RejectRequest(BaseModel):
    reason: str
    notes: Optional[str] = None
    closure_status: Optional[ClosureStatus] = None


class DeactivateRequest(BaseModel):
    reason: str
    closure_status: Optional[ClosureStatus] = None


@router.post("/verification/process-queue", summary="Verify the oldest pending suggestions")
def process_queue(
    payload: ProcessQueueRequest | None = None,
    user=Depends(require_admin),
    services: VerificationServices = Depends(get_services),
):
    batch_size = payload.batch_size if payload else None
    summary = services.queue.process_queue(batch_size)
    return summary.model_dump(mode="json")


@router.post("/suggestions/{suggestion_id}/verify", summary="Verify one suggestion now")
def verify_suggestion(
    suggestion_id: str,
    user=Depends(require_admin),
    services: VerificationServices = Depends(get_services),
):
    outcome = services.queue.process_candidate(suggestion_id)
    return {
        "suggestion_id": outcome.suggestion_id,
        "action": outcome.action,
        "resource_id": outcome.resource_id,
        "decision": outcome.decision.model_dump(mode="json") if outcome.decision else None,
        "duplicate": outcome.duplicate.model_dump(mode="json", exclude={"existing_resource"}),
        "cost_usd": outcome.cost_usd,
    }


@router.get("/suggestions", summary="List suggestions by status")
def list_suggestions(
    status: SuggestionStatus = Query(SuggestionStatus.NEEDS_ATTENTION),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user=Depends(require_admin),
    services: VerificationServices = Depends(get_services),
):
    items = services.suggestion_store.list_by_status(status, limit=limit, offset=offset)
    return {
        "items": [item.model_dump(mode="json") for item in items],
        "count": len(items),
        "totals": services.suggestion_store.count_by_status(),
    }


@router.post("/suggestions/{suggestion_id}/approve-with-corrections", summary="Approve after manual review")
def approve_with_corrections(
    suggestion_id: str,
    payload: ApproveWithCorrectionsRequest,
    user=Depends(require_admin),
    services: VerificationServices = Depends(get_services),
):
    resource_id = services.lifecycle.approve_with_corrections(
        suggestion_id,
        correction_notes=payload.correction_notes,
        actor=user.get("username", "admin"),
        corrections=payload.corrections,
        address_type=payload.address_type,
        service_area=payload.service_area,
        closure_status=payload.closure_status,
    )
    return {"suggestion_id": suggestion_id, "resource_id": resource_id, "status": SuggestionStatus.APPROVED.value}


@router.post("/suggestions/{suggestion_id}/reject", summary="Reject or park a suggestion")
def reject_suggestion(
    suggestion_id: str,
    payload: RejectRequest,
    user=Depends(require_admin),
    services: VerificationServices = Depends(get_services),
):
    status = services.lifecycle.reject(
        suggestion_id,
        payload.reason,
        actor=user.get("username", "admin"),
        notes=payload.notes,
        closure_status=payload.closure_status,
    )
    return {"suggestion_id": suggestion_id, "status": status.value}


@router.get("/suggestions/{suggestion_id}/verification-logs", summary="Verification history for a suggestion")
def verification_logs(
    suggestion_id: str,
    user=Depends(require_admin),
    services: VerificationServices = Depends(get_services),
):
    if services.suggestion_store.get(suggestion_id) is None:
        raise HTTPException(status_code=404, detail="Suggestion not found")
    return {
        "suggestion_id": suggestion_id,
        "logs": services.log_store.list_verifications(suggestion_id=suggestion_id),
        "events": services.log_store.list_events(suggestion_id=suggestion_id),
        "actions": services.log_store.list_actions(suggestion_id=suggestion_id),
    }


@router.post("/resources/check-duplicate", summary="Dry-run duplicate detection")
def check_duplicate(
    payload: CandidateFields,
    user=Depends(require_admin),
    services: VerificationServices = Depends(get_services),
):
    result = services.detector.check_for_duplicate(payload)
    return result.model_dump(mode="json")


@router.post("/resources/{resource_id}/reverify", summary="Re-run verification on a published resource")
def reverify_resource(
    resource_id: str,
    user=Depends(require_admin),
    services: VerificationServices = Depends(get_services),
):
    decision = services.queue.reverify_resource(resource_id)
    return {"resource_id": resource_id, **decision.model_dump(mode="json")}


@router.post("/resources/{resource_id}/deactivate", summary="Logically delete a resource")
def deactivate_resource(
    resource_id: str,
    payload: DeactivateRequest,
    user=Depends(require_admin),
    services: VerificationServices = Depends(get_services),
):
    resource = services.lifecycle.deactivate_resource(
        resource_id,
        actor=user.get("username", "admin"),
        reason=payload.reason,
        closure_status=payload.closure_status,
    )
    return resource.model_dump(mode="json")
