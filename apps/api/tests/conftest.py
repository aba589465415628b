import asyncio

import httpx
import pytest

from prospector.services.circuit_breaker import CircuitConfig, CircuitRegistry
from prospector.services.http_client import Fetcher


class FakeClock:
    """Monotonic clock the tests can move forward by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    # Keep tests offline and independent of any local .env keys
    for key in ("ANTHROPIC_API_KEY", "APOLLO_API_KEY", "HUNTER_API_KEY", "GOOGLE_PLACES_API_KEY", "SCRAPERAPI_KEY"):
        monkeypatch.setenv(key, "")
    monkeypatch.setenv("PROXY_MODE", "none")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return CircuitRegistry(CircuitConfig(), clock=clock)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def run_http(registry, sleeps):
    """Run `fn(fetcher)` against an httpx.MockTransport built from `handler`."""

    def _run(handler, fn, **fetcher_kwargs):
        async def _main():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                fetcher = Fetcher(client, registry, sleep=sleeps, **fetcher_kwargs)
                try:
                    return await fn(fetcher)
                finally:
                    await fetcher.aclose()

        return asyncio.run(_main())

    return _run


def html_response(body: str, status: int = 200) -> httpx.Response:
    return httpx.Response(status, text=body, headers={"Content-Type": "text/html; charset=utf-8"})


HOTEL_HOMEPAGE = """
<html>
<head>
  <title>Grand Hotel Zurich</title>
  <meta name="description" content="Five-star hotel on the lake in Zurich">
</head>
<body>
  <h1>Grand Hotel Zurich</h1>
  <p>Our 5-star hotel offers 120 rooms, a spa and a pool.</p>
  <a href="/team">Our Team</a>
  <a href="/contact">Contact</a>
  <a href="https://www.linkedin.com/company/grand-hotel-zurich">LinkedIn</a>
  <a href="mailto:info@grandhotel.com">info@grandhotel.com</a>
</body>
</html>
"""

HOTEL_TEAM_PAGE = """
<html><body>
  <div class="member"><h3>Anna Weber</h3><p>General Manager</p></div>
  <p>Email: anna.weber@grandhotel.com</p>
</body></html>
"""

HOTEL_CONTACT_PAGE = """
<html><body><p>Phone</p><p>+44 20 7946 0958</p></body></html>
"""


def hotel_site_handler(request: httpx.Request) -> httpx.Response:
    """Grand Hotel site plus empty search and a 404 from RDAP."""
    host = request.url.host
    if host == "www.grandhotel.com":
        pages = {"/": HOTEL_HOMEPAGE, "/team": HOTEL_TEAM_PAGE, "/contact": HOTEL_CONTACT_PAGE}
        body = pages.get(request.url.path)
        return html_response(body) if body else html_response("not found", 404)
    if host == "html.duckduckgo.com":
        return html_response("<html><body><div class='results'></div></body></html>")
    return httpx.Response(404, text="")


class FakeResult:
    def __init__(self, value):
        self.value = value

    def scalar_one_or_none(self):
        return self.value

    def scalars(self):
        return self

    def all(self):
        return self.value if isinstance(self.value, list) else [self.value]


class FakeSession:
    """AsyncSession stand-in: execute() hands back queued results in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.added = []
        self.commits = 0

    async def execute(self, statement):
        return FakeResult(self.results.pop(0) if self.results else None)

    def add(self, obj):
        self.added.append(obj)

    async def commit(self):
        self.commits += 1

    async def refresh(self, obj):
        pass

    async def delete(self, obj):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False
