"""
Prospect Enrichment Service
Turns a bare prospect row into a contactable lead:
  Phase 0: Google Places lookup (place id, address, website) when keyed
  Phase 1: Official website discovery via search when no website is known
  Phase 2: Contact finder (site crawl, then search / WHOIS / Apollo in parallel,
           then the resolver picks one decision-maker and email)
  Phase 3: Email verification (Hunter.io, else MX check)
  Phase 4: Property fields, tags, research notes, score + tier

run_enrichment() does no persistence; enrich_prospect() and enrich_batch()
load and write Prospect rows and log an Activity.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from prospector.config import Settings, settings
from prospector.models.prospect import Activity, PipelineStage, Prospect
from prospector.schemas.enrichment import (
    ConfidenceScore,
    ContactFinderResult,
    EmailVerification,
    PlacesResult,
)
from prospector.schemas.prospect import ScoreBreakdown
from prospector.services.circuit_breaker import CircuitRegistry
from prospector.services.contact_finder import find_decision_maker_contact
from prospector.services.heuristics import is_generic_email
from prospector.services.http_client import Fetcher
from prospector.services.notes_service import generate_research_notes
from prospector.services.places_service import lookup_place
from prospector.services.scoring_service import calculate_score
from prospector.services.search_service import discover_official_website
from prospector.services.verification_service import verify_email

logger = logging.getLogger(__name__)

ENRICHED_ACTIVITY_TITLE = "Auto-enriched with contact discovery"


class ProspectEnrichment(BaseModel):
    """Everything one enrichment run produced for a prospect."""

    updates: dict[str, Any] = Field(default_factory=dict)
    contact: ContactFinderResult
    places: Optional[PlacesResult] = None
    verification: Optional[EmailVerification] = None
    score: ScoreBreakdown
    tags: list[str] = Field(default_factory=list)


@asynccontextmanager
async def open_fetcher(registry: CircuitRegistry, config: Optional[Settings] = None) -> AsyncIterator[Fetcher]:
    config = config or settings
    async with httpx.AsyncClient(follow_redirects=True) as client:
        fetcher = Fetcher(
            client,
            registry,
            proxy=config.proxy_config(),
            retries=config.FETCH_RETRIES,
            backoff=config.FETCH_RETRY_BACKOFF,
        )
        try:
            yield fetcher
        finally:
            await fetcher.aclose()


def _build_tags(contact: ContactFinderResult, has_contact: bool) -> list[str]:
    info = contact.website.property_info
    enrichment = contact.enrichment

    tags = ["chain" if info.chain_brand else "independent"]
    if info.star_rating and info.star_rating >= 4:
        tags.append("luxury")
    if "spa" in info.amenities:
        tags.append("spa")
    if has_contact:
        tags.append("has-contact")

    has_decision_maker_email = enrichment.confidence_score == ConfidenceScore.high or bool(
        enrichment.contact_name
        and enrichment.validated_email
        and not is_generic_email(enrichment.validated_email)
    )
    if not has_decision_maker_email:
        tags.append("needs-contact-discovery")
    return tags


# ---------------------------------------------------------------------------
# Core pipeline (no persistence)
# ---------------------------------------------------------------------------

async def run_enrichment(
    prospect: dict[str, Any],
    fetcher: Fetcher,
    config: Optional[Settings] = None,
) -> ProspectEnrichment:
    config = config or settings
    name = prospect.get("name") or ""
    city = prospect.get("city")
    updates: dict[str, Any] = {}

    # --- Phase 0: Google Places ---
    places: Optional[PlacesResult] = None
    if config.GOOGLE_PLACES_API_KEY and not prospect.get("google_place_id"):
        places = await lookup_place(
            fetcher, config.GOOGLE_PLACES_API_KEY, name, city, prospect.get("country"),
            timeout=config.PLACES_TIMEOUT,
        )
        if places:
            updates["google_place_id"] = places.google_place_id
            if places.full_address and not prospect.get("full_address"):
                updates["full_address"] = places.full_address

    # --- Phase 1: Website discovery ---
    website_url = prospect.get("website") or (places.website if places else None)
    if not website_url:
        logger.info(f"[Enrichment] Discovering website for {name}...")
        website_url = await discover_official_website(fetcher, name, city, timeout=config.SEARCH_TIMEOUT)
    if website_url and website_url != prospect.get("website"):
        updates["website"] = website_url

    # --- Phase 2: Contact finder ---
    contact = await find_decision_maker_contact(
        fetcher,
        name,
        website_url,
        city=city,
        apollo_api_key=config.APOLLO_API_KEY,
        allow_generic_fallback=config.ALLOW_GENERIC_FALLBACK,
        max_pages=config.CRAWL_MAX_PAGES,
        site_timeout=config.SITE_TIMEOUT,
        search_timeout=config.SEARCH_TIMEOUT,
        whois_timeout=config.WHOIS_TIMEOUT,
        apollo_timeout=config.APOLLO_TIMEOUT,
    )
    enrichment = contact.enrichment
    website = contact.website

    # --- Phase 3: Verification ---
    verification: Optional[EmailVerification] = None
    email = prospect.get("email")
    if not email and enrichment.validated_email:
        verification = await verify_email(
            fetcher, config.HUNTER_API_KEY, enrichment.validated_email, timeout=config.VERIFY_TIMEOUT
        )
        if verification.valid:
            email = enrichment.validated_email
        else:
            logger.info(f"[Enrichment] Dropping {enrichment.validated_email}: {verification.status}")
    if email and email != prospect.get("email"):
        updates["email"] = email

    # --- Phase 4: Property fields, tags, notes ---
    if not prospect.get("phone") and website.phones:
        updates["phone"] = website.phones[0]

    has_contact = bool(enrichment.contact_name)
    if has_contact:
        updates["contact_name"] = enrichment.contact_name
        updates["contact_title"] = enrichment.contact_role or None

    linkedin = website.social_links.linkedin or next(
        (c.linkedin_url for c in contact.candidates if c.linkedin_url and c.name == enrichment.contact_name),
        None,
    )
    if linkedin and not prospect.get("linkedin_url"):
        updates["linkedin_url"] = linkedin
    if website.social_links.instagram and not prospect.get("instagram_handle"):
        updates["instagram_handle"] = website.social_links.instagram

    info = website.property_info
    if info.star_rating:
        updates["star_rating"] = info.star_rating
    if info.room_count:
        updates["estimated_rooms"] = info.room_count
    if info.chain_brand:
        updates["chain_affiliation"] = info.chain_brand

    tags = _build_tags(contact, has_contact)
    updates["tags"] = sorted(set(prospect.get("tags") or []) | set(tags))

    updates["notes"] = await generate_research_notes(prospect, website, places, config.ANTHROPIC_API_KEY)

    score = calculate_score({**prospect, **updates})
    updates["score"] = score.total
    updates["score_breakdown"] = score.breakdown
    updates["tier"] = score.tier

    logger.info(
        f"[Enrichment] {name}: contact={enrichment.contact_name or '-'} email={email or '-'} "
        f"({enrichment.confidence_score.value}, {enrichment.email_pattern_source.value}) "
        f"score={score.total} tier={score.tier.value}"
    )
    return ProspectEnrichment(
        updates=updates,
        contact=contact,
        places=places,
        verification=verification,
        score=score,
        tags=tags,
    )


# ---------------------------------------------------------------------------
# Persistence wrappers
# ---------------------------------------------------------------------------

async def _load_prospect(db: AsyncSession, prospect_id: str) -> Prospect:
    result = await db.execute(select(Prospect).where(Prospect.id == uuid.UUID(str(prospect_id))))
    prospect = result.scalar_one_or_none()
    if not prospect:
        raise ValueError(f"Prospect {prospect_id} not found")
    return prospect


async def enrich_prospect(
    db: AsyncSession,
    prospect_id: str,
    registry: CircuitRegistry,
    fetcher: Optional[Fetcher] = None,
    config: Optional[Settings] = None,
) -> dict:
    """
    Enrich one prospect and persist the result.
    Only prospects still in the `new` stage are enriched; others are skipped.
    """
    prospect = await _load_prospect(db, prospect_id)
    if prospect.stage != PipelineStage.new:
        return {"status": "skipped", "prospect_id": str(prospect.id), "stage": prospect.stage.value}

    if fetcher is None:
        async with open_fetcher(registry, config) as owned:
            outcome = await run_enrichment(prospect.to_dict(), owned, config)
    else:
        outcome = await run_enrichment(prospect.to_dict(), fetcher, config)

    for field, value in outcome.updates.items():
        setattr(prospect, field, value)
    prospect.stage = PipelineStage.researching

    enrichment = outcome.contact.enrichment
    found = [
        label
        for label, present in (
            (f"Email ({enrichment.confidence_score.value} confidence, {enrichment.email_pattern_source.value})",
             bool(outcome.updates.get("email"))),
            ("Phone", bool(outcome.updates.get("phone"))),
            (f"Contact: {enrichment.contact_name}", bool(enrichment.contact_name)),
            ("LinkedIn", bool(outcome.updates.get("linkedin_url"))),
        )
        if present
    ]
    db.add(Activity(
        prospect_id=prospect.id,
        type="note",
        title=ENRICHED_ACTIVITY_TITLE,
        description=f"Found: {', '.join(found) or 'nothing new'}",
        metadata_={
            "email_source": enrichment.email_pattern_source.value,
            "confidence": enrichment.confidence_score.value,
            "fallback_method": enrichment.fallback_method,
            "apollo_source": outcome.contact.apollo_source,
            "candidates": len(outcome.contact.candidates),
            "verification": outcome.verification.status if outcome.verification else None,
            "score": outcome.score.total,
        },
    ))
    await db.commit()
    await db.refresh(prospect)

    return {
        "status": "enriched",
        "prospect_id": str(prospect.id),
        "contact_name": prospect.contact_name,
        "email": prospect.email,
        "confidence": enrichment.confidence_score.value,
        "email_source": enrichment.email_pattern_source.value,
        "score": prospect.score,
        "tier": prospect.tier.value,
    }


async def enrich_batch(
    prospect_ids: list[str],
    registry: CircuitRegistry,
    session_factory: Optional[async_sessionmaker] = None,
    config: Optional[Settings] = None,
) -> dict:
    """
    Enrich prospects in small concurrent batches with a pause between batches
    to stay inside free-tier API rate limits. One DB session per prospect.
    """
    config = config or settings
    if session_factory is None:
        from prospector.database import AsyncSessionLocal
        session_factory = AsyncSessionLocal

    batch_size = max(1, config.ENRICH_BATCH_SIZE)
    results: list[dict] = []
    enriched = skipped = failed = 0

    async with open_fetcher(registry, config) as fetcher:

        async def _one(pid: str) -> dict:
            async with session_factory() as db:
                return await enrich_prospect(db, pid, registry, fetcher=fetcher, config=config)

        for start in range(0, len(prospect_ids), batch_size):
            batch = prospect_ids[start:start + batch_size]
            outcomes = await asyncio.gather(*(_one(pid) for pid in batch), return_exceptions=True)

            for pid, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"[Enrichment] Error enriching prospect {pid}: {outcome}")
                    failed += 1
                    results.append({"status": "error", "prospect_id": str(pid), "message": str(outcome)})
                elif outcome["status"] == "skipped":
                    skipped += 1
                    results.append(outcome)
                else:
                    enriched += 1
                    results.append(outcome)

            if start + batch_size < len(prospect_ids):
                await asyncio.sleep(config.ENRICH_BATCH_DELAY)

    return {
        "total": len(prospect_ids),
        "enriched": enriched,
        "skipped": skipped,
        "failed": failed,
        "results": results,
    }


async def get_enrichment_status(db: AsyncSession, prospect_id: str) -> dict:
    prospect = await _load_prospect(db, prospect_id)

    result = await db.execute(
        select(Activity)
        .where(Activity.prospect_id == prospect.id, Activity.title == ENRICHED_ACTIVITY_TITLE)
        .order_by(Activity.created_at.desc())
        .limit(1)
    )
    activity = result.scalar_one_or_none()

    if activity is None:
        return {"status": "not_started", "stage": prospect.stage.value, "prospect": None}

    return {
        "status": "enriched",
        "stage": prospect.stage.value,
        "enriched_at": activity.created_at.isoformat() if activity.created_at else None,
        "details": activity.metadata_ or {},
        "prospect": {
            "id": str(prospect.id),
            "contact_name": prospect.contact_name,
            "contact_title": prospect.contact_title,
            "email": prospect.email,
            "phone": prospect.phone,
            "score": prospect.score,
            "tier": prospect.tier.value,
            "tags": prospect.tags or [],
        },
    }
