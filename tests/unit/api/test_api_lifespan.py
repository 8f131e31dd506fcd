"""Unit tests for API startup and shutdown handling."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from reentry_map.api import app as app_module
from reentry_map.api import dependencies


class FakeServices:
    def __init__(self):
        self.closed = 0

    def close(self):
        self.closed += 1


@pytest.fixture(autouse=True)
def clear_service_cache():
    dependencies.get_services.cache_clear()
    yield
    dependencies.get_services.cache_clear()


def test_close_services_closes_the_cached_pipeline(monkeypatch):
    services = FakeServices()
    monkeypatch.setattr(dependencies, "build_verification_services", lambda: services)

    assert dependencies.get_services() is services
    dependencies.close_services()

    assert services.closed == 1
    assert dependencies.get_services.cache_info().currsize == 0


def test_close_services_without_a_pipeline_builds_nothing(monkeypatch):
    def fail():
        raise AssertionError("services should not be built on shutdown")

    monkeypatch.setattr(dependencies, "build_verification_services", fail)

    dependencies.close_services()


def test_app_shutdown_closes_services(monkeypatch):
    calls = []
    monkeypatch.setattr(app_module, "close_services", lambda: calls.append("closed"))

    with TestClient(app_module.create_app()) as client:
        assert client.get("/health").status_code == 200
        assert calls == []

    assert calls == ["closed"]
