"""Independent field checks run against a single candidate."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Optional

from reentry_map.errors import CollaboratorUnavailable
from reentry_map.models import CandidateFields, CheckName, VerificationCheckResult
from reentry_map.normalization.normalizer import enrich_address, format_us_phone, is_valid_nanp, phone_digits
from reentry_map.services.content_check import ContentVerifier, detect_conflicts
from reentry_map.services.geocoding import Geocoder
from reentry_map.services.url_probe import UrlProber
from reentry_map.settings import get_settings

LOGGER = logging.getLogger(__name__)

_CHECK_ORDER = [
    CheckName.URL_REACHABLE,
    CheckName.PHONE_VALID,
    CheckName.ADDRESS_GEOCODABLE,
    CheckName.WEBSITE_CONTENT_MATCHES,
]

_CheckJob = Callable[[], Optional[VerificationCheckResult]]


class FieldVerificationChecker:
    """Run the field checks for one candidate concurrently.

    ``url_reachable``, ``phone_valid`` and ``address_geocodable`` run when
    their field is present. ``website_content_matches`` also needs a content
    verifier and is omitted when the page has no readable text. Each check
    is guarded on its own: a collaborator outage (or any unexpected error)
    becomes an inconclusive result for that check only.
    """

    def __init__(
        self,
        *,
        geocoder: Geocoder,
        url_prober: UrlProber,
        content_verifier: ContentVerifier | None = None,
        url_timeout_seconds: Optional[float] = None,
        min_geocode_confidence: Optional[float] = None,
        geocode_cost_usd: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self._geocoder = geocoder
        self._prober = url_prober
        self._content_verifier = content_verifier
        self._url_timeout = (
            url_timeout_seconds if url_timeout_seconds is not None else settings.verification.url_timeout_seconds
        )
        self._min_geocode_confidence = (
            min_geocode_confidence
            if min_geocode_confidence is not None
            else settings.verification.min_geocode_confidence
        )
        self._geocode_cost = (
            geocode_cost_usd if geocode_cost_usd is not None else settings.geocoding.cost_per_request_usd
        )

    def run_checks(self, candidate: CandidateFields) -> Dict[str, VerificationCheckResult]:
        """Return a result per applicable check, keyed by check name."""

        jobs: Dict[CheckName, _CheckJob] = {}
        if candidate.website:
            jobs[CheckName.URL_REACHABLE] = lambda: self.check_url(candidate.website or "")
            if self._content_verifier is not None:
                jobs[CheckName.WEBSITE_CONTENT_MATCHES] = lambda: self.check_website_content(candidate)
        if candidate.phone:
            jobs[CheckName.PHONE_VALID] = lambda: self.check_phone(candidate.phone or "")
        if candidate.address:
            jobs[CheckName.ADDRESS_GEOCODABLE] = lambda: self.check_address(candidate)
        if not jobs:
            return {}

        results: Dict[CheckName, Optional[VerificationCheckResult]] = {}
        with ThreadPoolExecutor(max_workers=len(jobs)) as executor:
            futures = {executor.submit(self._guarded, name, job): name for name, job in jobs.items()}
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        return {name.value: results[name] for name in _CHECK_ORDER if results.get(name) is not None}

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------
    def check_url(self, website: str) -> VerificationCheckResult:
        probe = self._prober.probe(website, self._url_timeout)
        details = {"url": website, "status_code": probe.status_code, "final_url": probe.final_url}
        if probe.error:
            details["probe_error"] = probe.error
        return VerificationCheckResult(
            name=CheckName.URL_REACHABLE,
            passed=probe.reachable,
            confidence=1.0 if probe.reachable else 0.0,
            details=details,
        )

    def check_phone(self, phone: str) -> VerificationCheckResult:
        digits = phone_digits(phone)
        valid = is_valid_nanp(digits)
        details = {"raw": phone, "digits": digits, "format": "US"}
        if valid:
            details["normalized"] = format_us_phone(digits)
        else:
            details["reason"] = "expected 10 digits with area code and exchange starting 2-9"
        return VerificationCheckResult(
            name=CheckName.PHONE_VALID,
            passed=valid,
            confidence=1.0 if valid else 0.0,
            details=details,
        )

    def check_address(self, candidate: CandidateFields) -> VerificationCheckResult:
        query = enrich_address(candidate.address, candidate.city, candidate.state, candidate.zip)
        try:
            result = self._geocoder.geocode(query)
        except CollaboratorUnavailable as exc:
            return VerificationCheckResult(
                name=CheckName.ADDRESS_GEOCODABLE,
                passed=False,
                confidence=0.0,
                details={"query": query, "provider": self._geocoder.name},
                error=str(exc),
            )
        if result is None:
            return VerificationCheckResult(
                name=CheckName.ADDRESS_GEOCODABLE,
                passed=False,
                confidence=0.0,
                details={"query": query, "provider": self._geocoder.name, "reason": "no geocoding match"},
                cost_usd=self._geocode_cost,
            )
        passed = result.confidence >= self._min_geocode_confidence
        return VerificationCheckResult(
            name=CheckName.ADDRESS_GEOCODABLE,
            passed=passed,
            confidence=result.confidence,
            details={
                "query": query,
                "provider": self._geocoder.name,
                "latitude": result.latitude,
                "longitude": result.longitude,
                "formatted_address": result.formatted_address,
                "location_type": result.location_type,
            },
            cost_usd=self._geocode_cost,
        )

    def check_website_content(self, candidate: CandidateFields) -> Optional[VerificationCheckResult]:
        """Compare the candidate against its website; ``None`` when there is nothing to read."""

        if self._content_verifier is None:
            return None
        outcome = self._content_verifier.verify(candidate)
        if outcome is None:
            return None
        conflicts = detect_conflicts(candidate, outcome.found, source=candidate.website or "website")
        return VerificationCheckResult(
            name=CheckName.WEBSITE_CONTENT_MATCHES,
            passed=outcome.passed,
            confidence=outcome.confidence,
            details={
                "provider": self._content_verifier.name,
                "evidence": outcome.evidence,
                "found": outcome.found,
                "conflicts": [conflict.model_dump() for conflict in conflicts],
            },
            cost_usd=outcome.cost_usd,
            input_tokens=outcome.input_tokens,
            output_tokens=outcome.output_tokens,
        )

    def _guarded(self, name: CheckName, job: _CheckJob) -> Optional[VerificationCheckResult]:
        started = time.perf_counter()
        try:
            result = job()
        except CollaboratorUnavailable as exc:
            result = VerificationCheckResult(name=name, passed=False, confidence=0.0, error=str(exc))
        except Exception as exc:
            LOGGER.exception("Check %s raised unexpectedly", name.value)
            result = VerificationCheckResult(
                name=name,
                passed=False,
                confidence=0.0,
                error=f"{type(exc).__name__}: {exc}",
            )
        if result is None:
            return None
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        return result.model_copy(update={"duration_ms": duration_ms})


__all__ = ["FieldVerificationChecker"]
