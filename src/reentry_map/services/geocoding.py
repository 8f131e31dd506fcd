"""Geocoding collaborator used by the address check and the approval path."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from reentry_map.errors import CollaboratorUnavailable

LOGGER = logging.getLogger(__name__)

# Confidence assigned to each Google ``location_type`` precision level.
LOCATION_TYPE_CONFIDENCE = {
    "ROOFTOP": 0.95,
    "RANGE_INTERPOLATED": 0.85,
    "GEOMETRIC_CENTER": 0.7,
    "APPROXIMATE": 0.5,
}
_UNAVAILABLE_STATUSES = {"OVER_QUERY_LIMIT", "OVER_DAILY_LIMIT", "REQUEST_DENIED", "UNKNOWN_ERROR"}


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    """Coordinates resolved for an address string."""

    latitude: float
    longitude: float
    formatted_address: str
    confidence: float
    location_type: Optional[str] = None


class Geocoder(Protocol):
    """Protocol describing the geocoding collaborator.

    ``geocode`` returns ``None`` when the address cannot be resolved and raises
    :class:`CollaboratorUnavailable` when the service itself cannot answer.
    """

    name: str

    def geocode(self, address_text: str) -> Optional[GeocodeResult]:  # pragma: no cover - Protocol
        ...


class GoogleGeocoder:
    """Geocoder backed by the Google Maps Geocoding JSON API."""

    name = "google_maps"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://maps.googleapis.com/maps/api/geocode/json",
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def close(self) -> None:
        """Close the HTTP client when this geocoder created it."""

        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "GoogleGeocoder":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def geocode(self, address_text: str) -> Optional[GeocodeResult]:
        if not address_text or not address_text.strip():
            return None
        try:
            response = self._client.get(self._base_url, params={"address": address_text, "key": self._api_key})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("Geocoding request failed address=%s error=%s", address_text, exc)
            raise CollaboratorUnavailable(f"Geocoder unavailable: {exc}") from exc

        status = payload.get("status")
        if status in _UNAVAILABLE_STATUSES:
            raise CollaboratorUnavailable(f"Geocoder returned {status}: {payload.get('error_message', '')}".strip())
        results = payload.get("results") or []
        if status != "OK" or not results:
            LOGGER.info("Geocoder found no match address=%s status=%s", address_text, status)
            return None

        top = results[0]
        geometry = top.get("geometry") or {}
        location = geometry.get("location") or {}
        location_type = geometry.get("location_type")
        confidence = LOCATION_TYPE_CONFIDENCE.get(location_type, 0.5)
        if top.get("partial_match"):
            confidence = round(confidence * 0.8, 4)
        return GeocodeResult(
            latitude=float(location["lat"]),
            longitude=float(location["lng"]),
            formatted_address=top.get("formatted_address") or address_text,
            confidence=confidence,
            location_type=location_type,
        )


class DisabledGeocoder:
    """Geocoder used when no provider is configured; every call is unavailable."""

    name = "disabled"

    def geocode(self, address_text: str) -> Optional[GeocodeResult]:
        raise CollaboratorUnavailable("Geocoding is disabled (set REENTRY_GEOCODING__API_KEY)")


__all__ = ["GeocodeResult", "Geocoder", "GoogleGeocoder", "DisabledGeocoder", "LOCATION_TYPE_CONFIDENCE"]
