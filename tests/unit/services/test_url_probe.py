"""Unit tests for the httpx-backed website reachability probe."""

from __future__ import annotations

import httpx

from reentry_map.services.url_probe import HttpxUrlProber, extract_page_text


def test_head_success_is_reachable():
    prober = HttpxUrlProber(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    result = prober.probe("oakshelter.org", 5)

    assert result.reachable
    assert result.status_code == 200
    assert result.final_url.startswith("https://oakshelter.org")


def test_head_not_allowed_falls_back_to_get():
    methods = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(405 if request.method == "HEAD" else 200)

    result = HttpxUrlProber(transport=httpx.MockTransport(handler)).probe("https://oakshelter.org", 5)

    assert result.reachable
    assert methods == ["HEAD", "GET"]


def test_not_found_is_unreachable():
    prober = HttpxUrlProber(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    result = prober.probe("https://oakshelter.org/gone", 5)

    assert not result.reachable
    assert result.status_code == 404
    assert result.error is None


def test_connection_errors_are_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("name resolution failed", request=request)

    result = HttpxUrlProber(transport=httpx.MockTransport(handler)).probe("http://dead-link.example", 5)

    assert not result.reachable
    assert result.status_code is None
    assert "ConnectError" in result.error


PAGE = """
<html>
  <head><title>Oak St Shelter</title><style>body { color: red; }</style></head>
  <body>
    <script>window.tracker = 1;</script>
    <h1>Oak St   Shelter</h1>
    <p>Call (510) 555-0199 for a bed tonight.</p>
    <noscript>Enable JavaScript</noscript>
  </body>
</html>
"""


def test_page_text_drops_scripts_and_styles():
    text = extract_page_text(PAGE)

    assert text == "Oak St Shelter Oak St Shelter Call (510) 555-0199 for a bed tonight."
    assert extract_page_text("") == ""


def test_fetch_text_reads_the_page_body():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.headers["User-Agent"]))
        return httpx.Response(200, text=PAGE, headers={"Content-Type": "text/html"})

    text = HttpxUrlProber(transport=httpx.MockTransport(handler)).fetch_text("oakshelter.org", 5)

    assert "bed tonight" in text
    assert seen[0][0] == "GET"
    assert "ReentryMapVerifier" in seen[0][1]


def test_fetch_text_returns_none_for_error_pages():
    prober = HttpxUrlProber(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="oops")))

    assert prober.fetch_text("https://oakshelter.org", 5) is None


def test_fetch_text_returns_none_for_empty_pages():
    prober = HttpxUrlProber(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html></html>")))

    assert prober.fetch_text("https://oakshelter.org", 5) is None
