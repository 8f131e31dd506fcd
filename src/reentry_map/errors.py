"""Exception hierarchy shared by the verification pipeline and its API surface."""

from __future__ import annotations


class ReentryMapError(RuntimeError):
    """Base class for every error raised by :mod:`reentry_map`."""


class ValidationError(ReentryMapError, ValueError):
    """Raised synchronously when caller input is unacceptable. Never retried."""


class InvalidReason(ValidationError):
    """Raised when a rejection reason is in neither review taxonomy."""


class InvalidTransition(ValidationError):
    """Raised when a suggestion status change is not allowed from its current state."""


class GeocodingFailed(ValidationError):
    """Raised when a location that requires coordinates cannot be geocoded."""


class CollaboratorUnavailable(ReentryMapError):
    """Raised by external collaborators (geocoder, URL prober) that are down or over quota."""


class PersistenceConflict(ReentryMapError):
    """Raised when another process already approved the same suggestion."""


class SuggestionNotFound(ReentryMapError, LookupError):
    """Raised when a suggestion id does not resolve to a stored row."""


class ResourceNotFound(ReentryMapError, LookupError):
    """Raised when a resource id does not resolve to a stored row."""


__all__ = [
    "ReentryMapError",
    "ValidationError",
    "InvalidReason",
    "InvalidTransition",
    "GeocodingFailed",
    "CollaboratorUnavailable",
    "PersistenceConflict",
    "SuggestionNotFound",
    "ResourceNotFound",
]
