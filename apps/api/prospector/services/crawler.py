"""
Site Crawler
Fetches a hotel homepage plus a handful of contact/about/team sub-pages and
merges what the extractor finds on each into one WebsiteExtract.

All requests go through the Fetcher under the circuit key `site:<domain>`, so
a site that starts returning 403s stops being hammered.
"""
from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from prospector.schemas.enrichment import SocialLinks, TeamMember, WebsiteExtract
from prospector.services import extractor
from prospector.services.http_client import Fetcher

logger = logging.getLogger(__name__)

RELEVANT_PATH = re.compile(r"contact|kontakt|about|team|management|leadership|staff|imprint|impressum", re.IGNORECASE)
TEAM_PATH = re.compile(r"team|about|management|leadership|staff", re.IGNORECASE)
CONTACT_PATH = re.compile(r"contact|kontakt", re.IGNORECASE)

_SKIP_PREFIXES = ("#", "javascript:", "mailto:", "tel:")


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------

def normalize_url(url: str) -> str:
    url = (url or "").strip()
    if url and not re.match(r"^https?://", url, re.IGNORECASE):
        url = f"https://{url}"
    return url


def extract_domain(url: str) -> Optional[str]:
    """Hostname without a leading `www.`, or None when `url` doesn't parse."""
    if not url:
        return None
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    if not host or "." not in host:
        return None
    return host[4:] if host.startswith("www.") else host


def site_service_key(url: str) -> str:
    return f"site:{extract_domain(url) or url}"


def find_relevant_pages(html: str, base_url: str) -> list[str]:
    """Same-host links whose path looks like a contact, about or team page."""
    base_host = urlparse(base_url).hostname
    pages: list[str] = []
    try:
        soup = BeautifulSoup(html or "", "lxml")
    except Exception as e:
        logger.debug(f"[Crawler] link parse failed for {base_url}: {e}")
        return pages

    for a in soup.find_all("a", href=True):
        href = str(a["href"]).strip()
        if not href or href.lower().startswith(_SKIP_PREFIXES):
            continue
        try:
            absolute = urljoin(base_url, href)
            parsed = urlparse(absolute)
        except ValueError:
            continue
        if parsed.scheme not in ("http", "https") or parsed.hostname != base_host:
            continue
        if not RELEVANT_PATH.search(parsed.path):
            continue
        absolute = absolute.split("#", 1)[0]
        if absolute not in pages and absolute.rstrip("/") != base_url.rstrip("/"):
            pages.append(absolute)
    return pages


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------

def _merge_social(primary: SocialLinks, extra: SocialLinks) -> SocialLinks:
    merged = primary.model_dump()
    for platform, link in extra.model_dump().items():
        if link and not merged.get(platform):
            merged[platform] = link
    return SocialLinks(**merged)


async def crawl(fetcher: Fetcher, root_url: str, max_pages: int = 5, timeout: float = 10.0) -> WebsiteExtract:
    """Crawl a hotel site. Returns an empty extract when the homepage can't be fetched."""
    root_url = normalize_url(root_url)
    if not extract_domain(root_url):
        return WebsiteExtract()

    service = site_service_key(root_url)
    home = await fetcher.fetch(root_url, service=service, timeout=timeout)
    if home is None or not home.ok:
        logger.info(f"[Crawler] Homepage unavailable: {root_url}")
        return WebsiteExtract()

    base = extractor.extract(home.text)
    emails = list(base.emails)
    phones = list(base.phones)
    social = base.social_links
    team: list[TeamMember] = list(base.team_members)
    contact_page_url: Optional[str] = None

    pages = find_relevant_pages(home.text, root_url)[:max_pages]
    logger.debug(f"[Crawler] {root_url}: {len(pages)} sub-pages to visit")

    for page_url in pages:
        page = await fetcher.fetch(page_url, service=service, timeout=timeout)
        if page is None or not page.ok:
            continue

        emails.extend(e for e in extractor.find_emails(page.text) if e not in emails)
        phones.extend(p for p in extractor.page_phones(page.text) if p not in phones)
        social = _merge_social(social, extractor.find_social_links(page.text))

        path = urlparse(page_url).path
        if TEAM_PATH.search(path):
            team.extend(extractor.extract_team_members(page.text))
        if contact_page_url is None and CONTACT_PATH.search(path):
            contact_page_url = page_url

    result = WebsiteExtract(
        emails=extractor.prioritize_emails(emails),
        phones=phones[: extractor.MAX_PHONES],
        social_links=social,
        property_info=base.property_info,
        team_members=extractor.dedupe_team_members(team),
        contact_page_url=contact_page_url,
    )
    logger.info(
        f"[Crawler] {root_url}: {len(result.emails)} emails, {len(result.phones)} phones, "
        f"{len(result.team_members)} team members"
    )
    return result
