"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from reentry_map.services.factories import VerificationServices, build_verification_services


@lru_cache(maxsize=1)
def get_services() -> VerificationServices:
    return build_verification_services()


def close_services() -> None:
    """Close the cached pipeline, if one was built, and forget it."""

    if get_services.cache_info().currsize:
        get_services().close()
    get_services.cache_clear()
