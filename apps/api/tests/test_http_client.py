import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from conftest import html_response
from prospector.services.circuit_breaker import CircuitState
from prospector.services.http_client import (
    SCRAPERAPI_URL,
    USER_AGENTS,
    Fetcher,
    ProxyConfig,
    ProxyMode,
)


@pytest.mark.unit
class TestFetchAccounting:

    def test_success_returns_result_and_records_success(self, run_http, registry):
        seen = {}

        def handler(request):
            seen["ua"] = request.headers["User-Agent"]
            return html_response("<html>ok</html>")

        result = run_http(handler, lambda f: f.fetch("https://hotel.com/", service="site:hotel.com"))

        assert result.ok
        assert result.status_code == 200
        assert "ok" in result.text
        assert seen["ua"] in USER_AGENTS
        assert registry.get_state("site:hotel.com").successes == 1

    def test_plain_404_counts_as_success(self, run_http, registry):
        result = run_http(
            lambda r: html_response("missing", 404),
            lambda f: f.fetch("https://hotel.com/x", service="svc"),
        )
        assert result.status_code == 404
        assert not result.ok
        assert registry.get_state("svc").failures == 0

    def test_server_error_records_failure_without_retry(self, run_http, registry):
        calls = []

        def handler(request):
            calls.append(request)
            return html_response("oops", 503)

        result = run_http(handler, lambda f: f.fetch("https://hotel.com/", service="svc"))

        assert result.status_code == 503
        assert len(calls) == 1
        assert registry.get_state("svc").failures == 1

    def test_403_retries_then_opens_circuit(self, run_http, registry, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            return html_response("forbidden", 403)

        result = run_http(handler, lambda f: f.fetch("https://hotel.com/", service="svc"), retries=2, backoff=2.0)

        assert result.status_code == 403
        assert len(calls) == 3
        assert sleeps.delays == [2.0, 4.0]
        assert registry.get_state("svc").state == CircuitState.OPEN

    def test_429_then_success(self, run_http, registry, sleeps):
        statuses = iter([429, 200])

        def handler(request):
            return html_response("body", next(statuses))

        result = run_http(handler, lambda f: f.fetch("https://api.example.org/", service="svc"))

        assert result.ok
        assert sleeps.delays == [2.0]
        assert registry.rate_limit_backoff("svc") is None
        assert registry.get_state("svc").failures == 0

    def test_exhausted_retries_return_last_response(self, run_http, registry, sleeps):
        calls = []

        def handler(request):
            calls.append(request)
            return html_response("slow down", 429)

        result = run_http(handler, lambda f: f.fetch("https://api.example.org/", service="svc"), retries=1)

        assert result.status_code == 429
        assert result.text == "slow down"
        assert len(calls) == 2
        assert sleeps.delays == [2.0]

    def test_timeout_returns_none_and_records_failure(self, run_http, registry):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        result = run_http(handler, lambda f: f.fetch("https://hotel.com/", service="svc"))

        assert result is None
        assert registry.get_state("svc").failures == 1

    def test_connection_error_returns_none(self, run_http, registry):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert run_http(handler, lambda f: f.fetch("https://hotel.com/", service="svc")) is None
        assert registry.get_state("svc").failures == 1

    def test_denied_by_circuit_skips_request(self, run_http, registry):
        registry.record_failure("svc", "captcha")

        def handler(request):
            raise AssertionError("request must not be sent")

        assert run_http(handler, lambda f: f.fetch("https://hotel.com/", service="svc")) is None

    def test_json_body(self, run_http):
        result = run_http(
            lambda r: httpx.Response(200, json={"people": []}),
            lambda f: f.fetch("https://api.example.org/", service="svc", method="POST", json={"q": 1}),
        )
        assert result.json() == {"people": []}


@pytest.mark.unit
class TestProxyModes:

    def test_scraperapi_wraps_target_url(self, run_http):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return html_response("ok")

        run_http(
            handler,
            lambda f: f.fetch("https://hotel.com/team", service="svc"),
            proxy=ProxyConfig(mode=ProxyMode.scraperapi, api_key="k123"),
        )

        assert str(seen["url"]).startswith(SCRAPERAPI_URL)
        params = parse_qs(seen["url"].query.decode())
        assert params["api_key"] == ["k123"]
        assert params["url"] == ["https://hotel.com/team"]

    def test_use_proxy_false_goes_direct(self, run_http):
        seen = {}

        def handler(request):
            seen["host"] = request.url.host
            return html_response("ok")

        run_http(
            handler,
            lambda f: f.fetch("https://api.apollo.io/v1/x", service="apollo", use_proxy=False),
            proxy=ProxyConfig(mode=ProxyMode.scraperapi, api_key="k123"),
        )
        assert seen["host"] == "api.apollo.io"

    def test_custom_proxies_rotate_with_pooled_clients(self, registry):
        async def _main():
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(
                    client,
                    registry,
                    proxy=ProxyConfig(mode=ProxyMode.custom, proxies=["http://p1:8080", "http://p2:8080"]),
                )
                first, _ = fetcher._route("https://hotel.com")
                second, _ = fetcher._route("https://hotel.com")
                third, _ = fetcher._route("https://hotel.com")
                await fetcher.aclose()
                return first, second, third

        first, second, third = asyncio.run(_main())
        assert first is not second
        assert first is third
