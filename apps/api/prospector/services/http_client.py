"""
Shared outbound HTTP layer.
Every adapter (site crawler, DuckDuckGo, RDAP, Apollo, Places, Hunter) fetches
through a Fetcher so requests get a browser User-Agent, an explicit timeout,
optional proxying, bounded retries on 403/429, and circuit-breaker accounting.
"""
from __future__ import annotations

import asyncio
import enum
import itertools
import json as jsonlib
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field

from prospector.services.circuit_breaker import CircuitRegistry

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
]

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

SCRAPERAPI_URL = "http://api.scraperapi.com"

# Statuses that count against a service's circuit; other 4xx mean the host answered.
_FAILURE_STATUSES = {403, 429}
_RETRY_STATUSES = {403, 429}


class ProxyMode(str, enum.Enum):
    none = "none"
    scraperapi = "scraperapi"
    custom = "custom"


class ProxyConfig(BaseModel):
    mode: ProxyMode = ProxyMode.none
    api_key: str = ""
    proxies: list[str] = Field(default_factory=list)


@dataclass
class FetchResult:
    url: str
    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return jsonlib.loads(self.text)


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


class Fetcher:
    """Circuit-aware HTTP fetcher.

    `fetch` returns None when the circuit denies the request or the request
    fails at the transport level (timeout, DNS, refused connection). Non-2xx
    responses are returned so callers can inspect the status.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        registry: CircuitRegistry,
        proxy: ProxyConfig | None = None,
        retries: int = 2,
        backoff: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.registry = registry
        self.proxy = proxy or ProxyConfig()
        self.retries = retries
        self.backoff = backoff
        self._sleep = sleep
        self._proxy_cycle = itertools.cycle(self.proxy.proxies) if self.proxy.proxies else None
        self._proxy_clients: dict[str, httpx.AsyncClient] = {}

    async def aclose(self) -> None:
        for client in self._proxy_clients.values():
            await client.aclose()
        self._proxy_clients.clear()

    def _route(self, url: str) -> tuple[httpx.AsyncClient, str]:
        """Pick the client and effective URL for the configured proxy mode."""
        if self.proxy.mode == ProxyMode.scraperapi and self.proxy.api_key:
            wrapped = f"{SCRAPERAPI_URL}?api_key={self.proxy.api_key}&url={quote(url, safe='')}"
            return self.client, wrapped
        if self.proxy.mode == ProxyMode.custom and self._proxy_cycle is not None:
            proxy_url = next(self._proxy_cycle)
            client = self._proxy_clients.get(proxy_url)
            if client is None:
                client = httpx.AsyncClient(proxy=proxy_url, follow_redirects=True)
                self._proxy_clients[proxy_url] = client
            return client, url
        return self.client, url

    async def fetch(
        self,
        url: str,
        *,
        service: str,
        timeout: float = 10.0,
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        use_proxy: bool = True,
    ) -> FetchResult | None:
        if not self.registry.can_make_request(service):
            logger.debug(f"[Fetch] {service}: circuit denied {url[:80]}")
            return None

        request_headers = {"User-Agent": random_user_agent(), **BROWSER_HEADERS}
        if headers:
            request_headers.update(headers)

        client, target = self._route(url) if use_proxy else (self.client, url)

        attempt = 0
        while True:
            try:
                response = await client.request(
                    method,
                    target,
                    headers=request_headers,
                    params=params,
                    json=json,
                    timeout=timeout,
                    follow_redirects=True,
                )
            except httpx.TimeoutException as e:
                logger.debug(f"[Fetch] {service}: timeout for {url[:80]}")
                self.registry.record_failure(service, f"timeout: {e}")
                return None
            except httpx.HTTPError as e:
                logger.debug(f"[Fetch] {service}: {url[:80]}: {e}")
                self.registry.record_failure(service, e)
                return None

            if response.status_code in _RETRY_STATUSES and attempt < self.retries:
                delay = self.backoff * (attempt + 1)
                logger.info(
                    f"[Fetch] {service}: HTTP {response.status_code} (attempt {attempt + 1}), retrying in {delay:.0f}s"
                )
                await self._sleep(delay)
                attempt += 1
                continue
            break

        status = response.status_code
        if status in _FAILURE_STATUSES or status >= 500:
            self.registry.record_failure(service, f"HTTP {status}")
        else:
            self.registry.record_success(service)

        return FetchResult(
            url=str(response.url),
            status_code=status,
            text=response.text,
            headers=dict(response.headers),
        )
