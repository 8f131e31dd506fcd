"""Website reachability probe and page-text fetcher used by the website checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
from bs4 import BeautifulSoup

LOGGER = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; ReentryMapVerifier/1.0; +https://reentrymap.org)"
# Servers that refuse HEAD but may answer GET.
_HEAD_FALLBACK_STATUSES = {403, 405, 501}


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome of a reachability probe."""

    reachable: bool
    status_code: Optional[int] = None
    final_url: Optional[str] = None
    error: Optional[str] = None


class UrlProber(Protocol):
    """Protocol describing the website reachability collaborator."""

    def probe(self, url: str, timeout_seconds: float) -> ProbeResult:  # pragma: no cover - Protocol
        ...


def _normalize_url(url: str) -> str:
    stripped = url.strip()
    if not stripped.lower().startswith(("http://", "https://")):
        stripped = f"https://{stripped}"
    return stripped


class HttpxUrlProber:
    """Probe URLs with httpx, following redirects.

    A site counts as reachable when the final response status is 2xx or 3xx.
    Timeouts, DNS failures and refused connections are reported as
    unreachable with the error text recorded.
    """

    def __init__(self, *, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport

    def probe(self, url: str, timeout_seconds: float) -> ProbeResult:
        target = _normalize_url(url)
        try:
            with httpx.Client(
                timeout=timeout_seconds,
                follow_redirects=True,
                headers={"User-Agent": _USER_AGENT},
                transport=self._transport,
            ) as client:
                response = client.head(target)
                if response.status_code in _HEAD_FALLBACK_STATUSES:
                    response = client.get(target)
        except httpx.HTTPError as exc:
            LOGGER.info("URL probe failed url=%s error=%s", target, exc)
            return ProbeResult(reachable=False, error=f"{type(exc).__name__}: {exc}")

        reachable = 200 <= response.status_code < 400
        return ProbeResult(reachable=reachable, status_code=response.status_code, final_url=str(response.url))

    def fetch_text(self, url: str, timeout_seconds: float) -> Optional[str]:
        """Return the visible text of an HTML page, or ``None`` when it cannot be read."""

        target = _normalize_url(url)
        try:
            with httpx.Client(
                timeout=timeout_seconds,
                follow_redirects=True,
                headers={"User-Agent": _USER_AGENT},
                transport=self._transport,
            ) as client:
                response = client.get(target)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.info("Page fetch failed url=%s error=%s", target, exc)
            return None
        return extract_page_text(response.text) or None


def extract_page_text(html: str) -> str:
    """Strip scripts, styles and markup from ``html`` and collapse whitespace."""

    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["script", "style", "noscript"]):
        tag.decompose()
    return " ".join(soup.get_text(" ", strip=True).split())


__all__ = ["ProbeResult", "UrlProber", "HttpxUrlProber", "extract_page_text"]
