"""Unit tests for the verification queue batch job entrypoint."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from reentry_map.models import QueueFailure, QueueSummary
from reentry_map.worker.jobs import verification_queue as queue_job


def _reset_env(monkeypatch):
    for key in [
        "REENTRY_VERIFICATION_QUEUE__BATCH_SIZE",
        "REENTRY_VERIFICATION_QUEUE__REVERIFY_LIMIT",
        "REENTRY_VERIFICATION_QUEUE__DRY_RUN",
    ]:
        monkeypatch.delenv(key, raising=False)


class DummyQueue:
    def __init__(self, summary):
        self.summary = summary
        self.batch_sizes = []
        self.reverify_limits = []

    def process_queue(self, batch_size=None):
        self.batch_sizes.append(batch_size)
        return self.summary

    def reverify_due(self, *, limit=25):
        self.reverify_limits.append(limit)
        return []

    def clamp_batch_size(self, batch_size):
        return min(batch_size, 50)


class DummySuggestionStore:
    def __init__(self):
        self.limits = []

    def list_pending(self, *, limit):
        self.limits.append(limit)
        return [SimpleNamespace(id="sugg-1", name="Oak St Shelter")]


class DummyServices(SimpleNamespace):
    closed = 0

    def close(self):
        self.closed += 1


def _install(monkeypatch, summary):
    queue = DummyQueue(summary)
    store = DummySuggestionStore()
    services = DummyServices(queue=queue, suggestion_store=store)
    settings = SimpleNamespace(verification=SimpleNamespace(default_batch_size=3))
    monkeypatch.setattr(queue_job, "get_settings", lambda: settings)
    monkeypatch.setattr(
        queue_job,
        "build_verification_services",
        lambda settings: services,
    )
    queue.services = services
    return queue, store


def test_main_processes_default_batch(monkeypatch):
    _reset_env(monkeypatch)
    queue, _ = _install(monkeypatch, QueueSummary(processed=3, approved=2, flagged=1))

    assert queue_job.main() == 0
    assert queue.batch_sizes == [3]
    assert queue.reverify_limits == []


def test_main_honours_env_overrides_and_reverifies(monkeypatch):
    _reset_env(monkeypatch)
    monkeypatch.setenv("REENTRY_VERIFICATION_QUEUE__BATCH_SIZE", "10")
    monkeypatch.setenv("REENTRY_VERIFICATION_QUEUE__REVERIFY_LIMIT", "5")
    queue, _ = _install(monkeypatch, QueueSummary(processed=10, approved=10))

    assert queue_job.main() == 0
    assert queue.batch_sizes == [10]
    assert queue.reverify_limits == [5]


def test_main_returns_non_zero_when_suggestions_fail(monkeypatch):
    _reset_env(monkeypatch)
    summary = QueueSummary(
        processed=2,
        approved=1,
        errors=1,
        failures=[QueueFailure(suggestion_id="sugg-2", name="Broken Shelter", error="boom")],
    )
    _install(monkeypatch, summary)

    assert queue_job.main() == 1


def test_dry_run_lists_pending_without_processing(monkeypatch):
    _reset_env(monkeypatch)
    monkeypatch.setenv("REENTRY_VERIFICATION_QUEUE__DRY_RUN", "true")
    queue, store = _install(monkeypatch, QueueSummary())

    assert queue_job.main() == 0
    assert queue.batch_sizes == []
    assert store.limits == [3]


def test_main_fails_when_services_cannot_start(monkeypatch):
    _reset_env(monkeypatch)
    monkeypatch.setattr(queue_job, "get_settings", lambda: SimpleNamespace(verification=SimpleNamespace(default_batch_size=1)))

    def broken(settings):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(queue_job, "build_verification_services", broken)

    assert queue_job.main() == 1


def test_main_closes_services_after_the_batch(monkeypatch):
    _reset_env(monkeypatch)
    queue, _ = _install(monkeypatch, QueueSummary(processed=1, approved=1))

    assert queue_job.main() == 0
    assert queue.services.closed == 1


def test_main_closes_services_when_the_batch_raises(monkeypatch):
    _reset_env(monkeypatch)
    queue, _ = _install(monkeypatch, QueueSummary())

    def explode(batch_size=None):
        raise RuntimeError("database went away")

    queue.process_queue = explode

    with pytest.raises(RuntimeError):
        queue_job.main()
    assert queue.services.closed == 1


def test_dry_run_also_closes_services(monkeypatch):
    _reset_env(monkeypatch)
    monkeypatch.setenv("REENTRY_VERIFICATION_QUEUE__DRY_RUN", "true")
    queue, _ = _install(monkeypatch, QueueSummary())

    assert queue_job.main() == 0
    assert queue.services.closed == 1
