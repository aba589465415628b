"""
Decision-Maker Resolver
Chooses one contact and one email for a hotel from the candidates and emails
gathered upstream. Pure: no I/O.

Candidates' own addresses join the scraped pool before matching.

Strategies, first success wins:
  exact_match       : in title-priority order, a candidate's last name appears in a pooled address
  pattern_generation: top candidate x common address formats on the hotel domain
  generic_fallback  : info@<domain>, flagged for a call to reception

Confidence comes only from the provenance of the chosen email.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from prospector.schemas.enrichment import (
    CandidateSource,
    ConfidenceScore,
    EmailSource,
    EnrichmentResult,
)
from prospector.services.cascade import Strategy, first_success
from prospector.services.crawler import extract_domain
from prospector.services.heuristics import (
    email_domain,
    email_local_part,
    generate_email_permutations,
    is_fake_email,
    is_generic_email,
    is_valid_person_name,
    is_webmail,
    split_name,
)

logger = logging.getLogger(__name__)

PRIORITY_TITLES = [
    "general manager",
    "gm",
    "owner",
    "managing director",
    "hotel manager",
    "operations manager",
    "director of operations",
    "front office manager",
    "it manager",
    "revenue manager",
    "director",
    "manager",
]

GENERIC_FALLBACK_METHOD = "Call reception to obtain GM email"

_CONFIDENCE = {
    EmailSource.website_scrape: ConfidenceScore.high,
    EmailSource.apollo: ConfidenceScore.high,
    EmailSource.common_patterns: ConfidenceScore.medium,
    EmailSource.generic_fallback: ConfidenceScore.low,
    EmailSource.none: ConfidenceScore.low,
}


class Person(Protocol):
    name: str
    title: str
    email: Optional[str]


def confidence_for(source: EmailSource) -> ConfidenceScore:
    return _CONFIDENCE[source]


def _title_rank(title: str) -> int:
    lowered = (title or "").lower()
    for i, keyword in enumerate(PRIORITY_TITLES):
        if keyword == "gm":
            if lowered == "gm" or lowered.startswith("gm ") or " gm" in lowered:
                return i
        elif keyword in lowered:
            return i
    return len(PRIORITY_TITLES)


def rank_candidates(candidates: Sequence[Person]) -> list[Person]:
    """Stable sort by the first priority title each candidate's title contains."""
    return sorted(candidates, key=lambda c: _title_rank(c.title))


# ---------------------------------------------------------------------------
# Strategy plumbing
# ---------------------------------------------------------------------------

@dataclass
class _Context:
    candidates: list[Person]
    existing_emails: list[str]
    domain: Optional[str]
    fallback_domain: Optional[str]
    apollo_emails: set[str] = field(default_factory=set)


@dataclass
class _Pick:
    email: str
    source: EmailSource
    person: Optional[Person] = None
    extra_emails: list[str] = field(default_factory=list)
    fallback_method: Optional[str] = None


def _usable(email: Optional[str]) -> bool:
    return bool(email) and not is_generic_email(email) and not is_fake_email(email)


def _exact_match(ctx: _Context) -> Optional[_Pick]:
    for person in ctx.candidates:
        _, last = split_name(person.name)
        if len(last) < 3:
            continue
        for email in ctx.existing_emails:
            if _usable(email) and last in email_local_part(email):
                source = EmailSource.apollo if email in ctx.apollo_emails else EmailSource.website_scrape
                return _Pick(email=email, source=source, person=person)
    return None


def _pattern_generation(ctx: _Context) -> Optional[_Pick]:
    if not ctx.candidates or not ctx.domain:
        return None
    person = ctx.candidates[0]
    permutations = generate_email_permutations(person.name, ctx.domain)
    if not permutations:
        return None
    return _Pick(
        email=permutations[0],
        source=EmailSource.common_patterns,
        person=person,
        extra_emails=permutations,
    )


def _generic_fallback(ctx: _Context) -> Optional[_Pick]:
    domain = ctx.domain or ctx.fallback_domain
    if not domain:
        return None
    return _Pick(
        email=f"info@{domain}",
        source=EmailSource.generic_fallback,
        person=ctx.candidates[0] if ctx.candidates else None,
        fallback_method=GENERIC_FALLBACK_METHOD,
    )


RESOLVER_STRATEGIES: list[Strategy[_Pick]] = [
    Strategy("exact_match", _exact_match),
    Strategy("pattern_generation", _pattern_generation),
    Strategy("generic_fallback", _generic_fallback),
]


def _resolve_domain(website_url: Optional[str], existing_emails: list[str]) -> Optional[str]:
    domain = extract_domain(website_url or "")
    if domain:
        return domain
    for email in existing_emails:
        if not is_webmail(email) and email_domain(email):
            return email_domain(email)
    return None


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        key = v.lower()
        if key not in seen:
            seen.add(key)
            out.append(key)
    return out


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def resolve(
    hotel_name: str,
    website_url: Optional[str],
    team_members: Sequence[Person],
    existing_emails: Sequence[str],
    allow_generic_fallback: bool = False,
) -> EnrichmentResult:
    existing = [e.lower() for e in existing_emails if e]
    valid = [m for m in team_members if is_valid_person_name(m.name)]
    ranked = rank_candidates(valid)

    domain = _resolve_domain(website_url, existing)
    fallback_domain = None
    if not domain and website_url:
        fallback_domain = extract_domain(f"https://{website_url.strip()}")

    pool = list(existing)
    apollo_emails: set[str] = set()
    for member in ranked:
        if not member.email:
            continue
        own = member.email.lower()
        if own in pool:
            continue
        pool.append(own)
        if getattr(member, "source", None) == CandidateSource.apollo:
            apollo_emails.add(own)

    ctx = _Context(
        candidates=ranked,
        existing_emails=pool,
        domain=domain,
        fallback_domain=fallback_domain,
        apollo_emails=apollo_emails,
    )
    outcome = first_success(RESOLVER_STRATEGIES, ctx)

    all_emails = list(pool)
    if outcome is None:
        logger.info(f"[Resolver] {hotel_name}: no contact or domain to work with")
        return EnrichmentResult(
            hotel_name=hotel_name,
            contact_name=ranked[0].name if ranked else "",
            contact_role=ranked[0].title if ranked else "",
            all_emails_found=_dedupe(all_emails),
            fallback_method=GENERIC_FALLBACK_METHOD,
        )

    pick = outcome.value
    all_emails += pick.extra_emails
    if pick.source == EmailSource.generic_fallback:
        all_emails.append(pick.email)

    email: Optional[str] = pick.email
    source = pick.source
    if is_fake_email(email):
        logger.info(f"[Resolver] {hotel_name}: rejected fake email {email}")
        email, source = None, EmailSource.none
    elif is_generic_email(email):
        if allow_generic_fallback:
            logger.info(f"[Resolver] {hotel_name}: keeping generic email {email} at low confidence")
        else:
            logger.info(f"[Resolver] {hotel_name}: rejected generic email {email}")
            email, source = None, EmailSource.none

    result = EnrichmentResult(
        hotel_name=hotel_name,
        contact_name=pick.person.name if pick.person else "",
        contact_role=pick.person.title if pick.person else "",
        validated_email=email,
        email_pattern_source=source,
        confidence_score=confidence_for(source),
        all_emails_found=_dedupe(all_emails),
        fallback_method=pick.fallback_method,
    )
    logger.info(
        f"[Resolver] {hotel_name}: {outcome.strategy} -> {result.validated_email or 'no email'} "
        f"({result.confidence_score.value})"
    )
    return result
