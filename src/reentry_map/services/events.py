"""Verification progress events delivered to observers outside the business logic."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

from reentry_map.models import EventType
from reentry_map.observability import Observability, get_observability
from reentry_map.store.verification_log_store import VerificationLogStore

LOGGER = logging.getLogger(__name__)


class VerificationEventSink(Protocol):
    """Observer notified as a verification run progresses."""

    def emit(
        self,
        event_type: EventType,
        data: Dict[str, Any],
        *,
        suggestion_id: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> None:  # pragma: no cover - Protocol
        ...


class StoredEventSink:
    """Persist events to ``verification_events`` and mirror them as structured logs + metrics."""

    def __init__(self, *, log_store: VerificationLogStore, observability: Observability | None = None) -> None:
        self._store = log_store
        self._observability = observability or get_observability(component="verification")

    def emit(
        self,
        event_type: EventType,
        data: Dict[str, Any],
        *,
        suggestion_id: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> None:
        self._store.record_event(event_type, data, suggestion_id=suggestion_id, resource_id=resource_id)
        self._observability.emit_event(
            f"verification.{event_type.value}",
            suggestion_id=suggestion_id,
            resource_id=resource_id,
            **data,
        )
        self._observability.increment("verification.events", tags={"type": event_type.value})


class NullEventSink:
    """Sink that drops every event."""

    def emit(
        self,
        event_type: EventType,
        data: Dict[str, Any],
        *,
        suggestion_id: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> None:
        LOGGER.debug("Dropped %s event suggestion_id=%s", event_type.value, suggestion_id)


__all__ = ["VerificationEventSink", "StoredEventSink", "NullEventSink"]
