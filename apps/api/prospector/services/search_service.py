"""
DuckDuckGo search adapter.
Scrapes the HTML endpoint (no API key) for:
  - decision-maker names co-occurring with a senior title in result snippets
  - general result lists with OTA / social noise removed
  - the official website of a hotel

A captcha or "unusual traffic" page forces the `duckduckgo` circuit open.
"""
from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup

from prospector.schemas.enrichment import CandidateName, CandidateSource, SearchResult
from prospector.services.heuristics import is_valid_person_name
from prospector.services.http_client import Fetcher

logger = logging.getLogger(__name__)

SERVICE = "duckduckgo"
DDG_HTML_URL = "https://html.duckduckgo.com/html/"
MAX_RESULTS = 10

EXCLUDED_RESULT_DOMAINS = [
    "booking.com", "expedia.", "hotels.com", "tripadvisor.", "trivago.", "agoda.", "kayak.",
    "priceline.", "hostelworld.", "airbnb.", "facebook.com", "instagram.com", "linkedin.com",
    "twitter.com", "x.com", "youtube.com", "wikipedia.org", "yelp.",
]

_BLOCK_MARKERS = ("captcha", "unusual traffic", "anomaly-modal")

_NAME = r"([A-Z][a-z]+(?: [A-Z][a-z]+){1,2})"
_TITLE = r"(?i:(general manager|managing director|hotel manager|director of operations|director|owner|founder|ceo|gm))"

DECISION_MAKER_PATTERNS = [
    # "Anna Weber, General Manager" / "Anna Weber - Owner"
    (re.compile(_NAME + r"\s*[,\-–|]\s*(?:(?i:the|is|as)\s+)?" + _TITLE + r"\b"), 1, 2),
    # "General Manager Anna Weber" / "Owner: Anna Weber"
    (re.compile(r"\b" + _TITLE + r"\s*(?:[,:\-–|]\s*|(?i:is)\s+)?" + _NAME), 2, 1),
]

_ACRONYM_TITLES = {"gm": "GM", "ceo": "CEO"}


def _canonical_title(raw: str) -> str:
    lowered = raw.lower()
    return _ACRONYM_TITLES.get(lowered, lowered.title())


def _decode_result_href(href: str) -> str:
    """DuckDuckGo wraps targets as //duckduckgo.com/l/?uddg=<encoded url>."""
    if "uddg=" in href:
        query = urlparse(href if "://" in href else f"https:{href}").query
        target = parse_qs(query).get("uddg", [""])[0]
        if target:
            return target
    return href


def _is_excluded(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(d in host for d in EXCLUDED_RESULT_DOMAINS)


async def _results_page(fetcher: Fetcher, query: str, timeout: float) -> Optional[BeautifulSoup]:
    resp = await fetcher.fetch(DDG_HTML_URL, service=SERVICE, timeout=timeout, params={"q": query})
    if resp is None or not resp.ok:
        return None

    lowered = resp.text.lower()
    if any(marker in lowered for marker in _BLOCK_MARKERS):
        logger.warning("[Search] DuckDuckGo served a captcha page, backing off")
        fetcher.registry.record_failure(SERVICE, "captcha detected", is_blocked=True)
        return None

    return BeautifulSoup(resp.text, "lxml")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def search_duckduckgo(fetcher: Fetcher, query: str, timeout: float = 8.0) -> list[SearchResult]:
    soup = await _results_page(fetcher, query, timeout)
    if soup is None:
        return []

    results: list[SearchResult] = []
    seen: set[str] = set()
    for a in soup.select("a.result__a"):
        url = _decode_result_href(str(a.get("href", "")))
        if not url.startswith("http") or url in seen or _is_excluded(url):
            continue
        seen.add(url)
        results.append(SearchResult(url=url, title=a.get_text(" ", strip=True)))
        if len(results) >= MAX_RESULTS:
            break
    return results


async def search_decision_makers(
    fetcher: Fetcher, hotel_name: str, city: Optional[str] = None, timeout: float = 8.0
) -> list[CandidateName]:
    """Names paired with a senior title in search result titles and snippets."""
    location = f" {city}" if city else ""
    query = f'"{hotel_name}"{location} "general manager" OR "hotel manager" OR "director"'
    soup = await _results_page(fetcher, query, timeout)
    if soup is None:
        return []

    candidates: list[CandidateName] = []
    seen: set[str] = set()
    for result in soup.select(".result"):
        link = result.select_one("a.result__a")
        url = _decode_result_href(str(link.get("href", ""))) if link else ""
        snippet = result.select_one(".result__snippet")
        text = " | ".join(
            el.get_text(" ", strip=True) for el in (link, snippet) if el is not None
        )

        for pattern, name_group, title_group in DECISION_MAKER_PATTERNS:
            for match in pattern.finditer(text):
                name = match.group(name_group).strip()
                if name.lower() in seen or not is_valid_person_name(name):
                    continue
                seen.add(name.lower())
                candidates.append(CandidateName(
                    name=name,
                    title=_canonical_title(match.group(title_group)),
                    source=CandidateSource.search,
                    linkedin_url=url if "linkedin.com/in/" in url else None,
                ))

    logger.info(f"[Search] {hotel_name}: {len(candidates)} decision-maker candidates")
    return candidates


async def discover_official_website(
    fetcher: Fetcher, hotel_name: str, city: Optional[str] = None, timeout: float = 8.0
) -> Optional[str]:
    """First non-aggregator result for the hotel, reduced to scheme + host."""
    location = f" {city}" if city else ""
    results = await search_duckduckgo(fetcher, f"{hotel_name}{location} hotel official site", timeout=timeout)
    for result in results:
        parsed = urlparse(result.url)
        if parsed.scheme and parsed.hostname:
            website = f"{parsed.scheme}://{parsed.hostname}"
            logger.info(f"[Search] Discovered website for {hotel_name}: {website}")
            return website
    return None
