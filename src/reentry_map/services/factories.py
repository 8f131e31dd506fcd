"""Factory helpers that wire the verification pipeline from configuration.

These helpers centralize how the settings declared in
:mod:`reentry_map.settings` select storage and collaborators, so the API and
the worker jobs assemble identical pipelines.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from reentry_map.observability import get_observability
from reentry_map.services.checks import FieldVerificationChecker
from reentry_map.services.content_check import ChatModelContentVerifier, ContentVerifier
from reentry_map.services.decision import DecisionEngine
from reentry_map.services.deduplication import DuplicateDetector
from reentry_map.services.events import StoredEventSink
from reentry_map.services.geocoding import DisabledGeocoder, Geocoder, GoogleGeocoder
from reentry_map.services.grouping import ParentChildGrouper
from reentry_map.services.lifecycle import SuggestionLifecycleManager
from reentry_map.services.queue import VerificationQueue
from reentry_map.services.url_probe import HttpxUrlProber, UrlProber
from reentry_map.services.verification import VerificationRunner
from reentry_map.settings import Settings, get_settings
from reentry_map.store.resource_store import ResourceStore
from reentry_map.store.sql import METADATA, build_engine
from reentry_map.store.suggestion_store import SuggestionStore
from reentry_map.store.verification_log_store import VerificationLogStore


def build_session_factory(settings: Settings | None = None) -> sessionmaker:
    """Return a sessionmaker for the configured backend.

    Local environments create missing tables on the fly; other environments
    rely on the Alembic migrations.
    """

    resolved = settings or get_settings()
    engine = build_engine(settings=resolved)
    if resolved.is_local:
        METADATA.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def build_geocoder(settings: Settings | None = None) -> Geocoder:
    """Return the configured geocoder, or a disabled one when no API key is set."""

    resolved = settings or get_settings()
    geocoding = resolved.geocoding
    if geocoding.provider == "disabled" or not geocoding.api_key:
        return DisabledGeocoder()
    if geocoding.provider == "google":
        return GoogleGeocoder(
            api_key=geocoding.api_key,
            base_url=geocoding.base_url,
            timeout_seconds=geocoding.timeout_seconds,
        )
    raise NotImplementedError(f"Unsupported geocoding provider '{geocoding.provider}'")


def build_url_prober() -> UrlProber:
    return HttpxUrlProber()


def build_content_verifier(settings: Settings | None = None) -> Optional[ContentVerifier]:
    """Return the configured website-content verifier, or ``None`` when disabled."""

    resolved = settings or get_settings()
    llm = resolved.llm
    if llm.provider == "disabled":
        return None
    if llm.provider == "ollama":
        from langchain_ollama import ChatOllama

        return ChatModelContentVerifier(
            chat_model=ChatOllama(model=llm.chat_model, base_url=llm.ollama_base_url, temperature=llm.temperature),
            fetcher=HttpxUrlProber(),
            model_name=f"ollama:{llm.chat_model}",
            timeout_seconds=resolved.verification.url_timeout_seconds,
            max_page_chars=llm.max_page_chars,
            input_cost_per_million_usd=llm.input_cost_per_million_usd,
            output_cost_per_million_usd=llm.output_cost_per_million_usd,
        )
    raise NotImplementedError(f"Unsupported LLM provider '{llm.provider}'")


@dataclass(slots=True)
class VerificationServices:
    """Every store and component of one wired pipeline."""

    suggestion_store: SuggestionStore
    resource_store: ResourceStore
    log_store: VerificationLogStore
    detector: DuplicateDetector
    lifecycle: SuggestionLifecycleManager
    queue: VerificationQueue
    geocoder: Optional[Geocoder] = None
    content_verifier: Optional[ContentVerifier] = None

    def close(self) -> None:
        """Release network clients held by the collaborators."""

        for collaborator in (self.geocoder, self.content_verifier):
            close = getattr(collaborator, "close", None)
            if callable(close):
                close()


def build_verification_services(
    *,
    session_factory: sessionmaker | None = None,
    geocoder: Geocoder | None = None,
    url_prober: UrlProber | None = None,
    content_verifier: ContentVerifier | None = None,
    settings: Settings | None = None,
) -> VerificationServices:
    """Assemble stores, collaborators and services sharing one session factory."""

    resolved = settings or get_settings()
    factory = session_factory or build_session_factory(resolved)
    geocoder = geocoder or build_geocoder(resolved)
    url_prober = url_prober or build_url_prober()
    if content_verifier is None:
        content_verifier = build_content_verifier(resolved)

    suggestion_store = SuggestionStore(session_factory=factory)
    resource_store = ResourceStore(session_factory=factory)
    log_store = VerificationLogStore(session_factory=factory)
    events = StoredEventSink(
        log_store=log_store,
        observability=get_observability(component="verification", settings=resolved),
    )

    detector = DuplicateDetector(resource_store=resource_store)
    grouper = ParentChildGrouper(resource_store=resource_store, suggestion_store=suggestion_store)
    lifecycle = SuggestionLifecycleManager(
        suggestion_store=suggestion_store,
        resource_store=resource_store,
        log_store=log_store,
        geocoder=geocoder,
        grouper=grouper,
        events=events,
    )
    runner = VerificationRunner(
        detector=detector,
        checker=FieldVerificationChecker(
            geocoder=geocoder, url_prober=url_prober, content_verifier=content_verifier
        ),
        engine=DecisionEngine(),
        lifecycle=lifecycle,
        log_store=log_store,
        events=events,
        geocoder_name=geocoder.name,
    )
    queue = VerificationQueue(
        suggestion_store=suggestion_store,
        resource_store=resource_store,
        runner=runner,
        events=events,
    )
    return VerificationServices(
        suggestion_store=suggestion_store,
        resource_store=resource_store,
        log_store=log_store,
        detector=detector,
        lifecycle=lifecycle,
        queue=queue,
        geocoder=geocoder,
        content_verifier=content_verifier,
    )


__all__ = [
    "build_session_factory",
    "build_geocoder",
    "build_url_prober",
    "build_content_verifier",
    "build_verification_services",
    "VerificationServices",
]
