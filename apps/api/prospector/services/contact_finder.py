"""
Decision-maker contact finder.
Crawls the hotel website first, then queries search, WHOIS and Apollo in
parallel, pools the validated candidates and emails, and lets the resolver
pick one contact.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from prospector.schemas.enrichment import (
    ApolloResult,
    CandidateName,
    CandidateSource,
    ContactFinderResult,
    WebsiteExtract,
)
from prospector.services.apollo_service import search_apollo
from prospector.services.crawler import crawl, extract_domain, normalize_url
from prospector.services.heuristics import is_valid_person_name
from prospector.services.http_client import Fetcher
from prospector.services.resolver import resolve
from prospector.services.search_service import search_decision_makers
from prospector.services.whois_service import lookup_whois

logger = logging.getLogger(__name__)

REGISTRANT_TITLE = "Domain Registrant"


def _settled(value: Any, default: Any, label: str) -> Any:
    if isinstance(value, BaseException):
        logger.debug(f"[ContactFinder] {label} failed: {value}")
        return default
    return value


def _merge_candidates(candidates: list[CandidateName]) -> list[CandidateName]:
    """One candidate per name, first seen wins unless a later one has an email."""
    merged: dict[str, CandidateName] = {}
    for c in candidates:
        key = c.name.lower()
        existing = merged.get(key)
        if existing is None:
            merged[key] = c
        elif c.email and not existing.email:
            merged[key] = existing.model_copy(update={"email": c.email, "linkedin_url": existing.linkedin_url or c.linkedin_url})
    return list(merged.values())


async def find_decision_maker_contact(
    fetcher: Fetcher,
    hotel_name: str,
    website_url: Optional[str],
    city: Optional[str] = None,
    website: Optional[WebsiteExtract] = None,
    apollo_api_key: str = "",
    allow_generic_fallback: bool = False,
    max_pages: int = 5,
    site_timeout: float = 10.0,
    search_timeout: float = 8.0,
    whois_timeout: float = 5.0,
    apollo_timeout: float = 15.0,
) -> ContactFinderResult:
    root_url = normalize_url(website_url) if website_url else None
    domain = extract_domain(root_url) if root_url else None

    # Site crawl must finish before its output is usable
    if website is None:
        website = await crawl(fetcher, root_url, max_pages=max_pages, timeout=site_timeout) if root_url else WebsiteExtract()

    search_res, whois_res, apollo_res = await asyncio.gather(
        search_decision_makers(fetcher, hotel_name, city, timeout=search_timeout),
        lookup_whois(fetcher, domain, timeout=whois_timeout),
        search_apollo(fetcher, apollo_api_key, hotel_name, domain, timeout=apollo_timeout),
        return_exceptions=True,
    )
    search_candidates: list[CandidateName] = _settled(search_res, [], "search")
    whois = _settled(whois_res, None, "whois")
    apollo: ApolloResult = _settled(apollo_res, ApolloResult(source="apollo_error"), "apollo")

    candidates: list[CandidateName] = [
        CandidateName(name=m.name, title=m.title, source=CandidateSource.website, email=m.email)
        for m in website.team_members
        if is_valid_person_name(m.name)
    ]
    candidates += search_candidates
    if whois and whois.registrant_name and is_valid_person_name(whois.registrant_name):
        candidates.append(CandidateName(
            name=whois.registrant_name,
            title=REGISTRANT_TITLE,
            source=CandidateSource.whois,
            email=whois.registrant_email,
        ))
    candidates += [
        CandidateName(
            name=c.name,
            title=c.title,
            source=CandidateSource.apollo,
            email=c.email,
            linkedin_url=c.linkedin_url,
        )
        for c in apollo.contacts
        if is_valid_person_name(c.name)
    ]
    candidates = _merge_candidates(candidates)

    emails = list(website.emails)
    if whois and whois.registrant_email and whois.registrant_email not in emails:
        emails.append(whois.registrant_email)

    logger.info(
        f"[ContactFinder] {hotel_name}: {len(candidates)} candidates, {len(emails)} emails "
        f"(apollo: {apollo.source})"
    )

    enrichment = resolve(
        hotel_name,
        root_url,
        candidates,
        emails,
        allow_generic_fallback=allow_generic_fallback,
    )
    return ContactFinderResult(
        domain=domain,
        website=website,
        candidates=candidates,
        whois=whois,
        apollo_source=apollo.source,
        enrichment=enrichment,
    )
