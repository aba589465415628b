"""
Research notes for the sales team.
Claude writes short, actionable notes from what enrichment found; without an
Anthropic key (or when every model fails) rule-based notes are used instead.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping, Optional

from prospector.schemas.enrichment import PlacesResult, WebsiteExtract

logger = logging.getLogger(__name__)

_CLAUDE_MODELS = [
    "claude-sonnet-4-20250514",   # primary
    "claude-3-haiku-20240307",    # fallback, fast
]

NOTES_SYSTEM_PROMPT = """You are a sales research analyst for a hospitality technology company.
Write brief, actionable research notes about hotel prospects. Focus on:
- Key decision makers found
- Why they might need hospitality tech (based on hiring signals)
- Any notable details about the property
- Suggested approach angle

Keep notes under 200 words. Be direct and useful for a sales team."""

DEFAULT_NOTE = "New lead - research needed."


async def call_claude_async(prompt: str, api_key: str, max_tokens: int = 300, system: Optional[str] = None) -> str:
    """Call Claude with retry + model fallback. Returns "" when nothing succeeds.

    For each model in the chain: one retry after 2s on 429/529, skip straight
    to the next model on 404 or any other error.
    """
    if not api_key:
        return ""

    import anthropic

    MAX_RETRIES = 1
    BASE_DELAY = 2  # seconds

    def _call_sync() -> str:
        client = anthropic.Anthropic(api_key=api_key, max_retries=0)
        kwargs: dict[str, Any] = {"system": system} if system else {}

        for model in _CLAUDE_MODELS:
            for attempt in range(MAX_RETRIES + 1):
                try:
                    message = client.messages.create(
                        model=model,
                        max_tokens=max_tokens,
                        messages=[{"role": "user", "content": prompt}],
                        **kwargs,
                    )
                    if model != _CLAUDE_MODELS[0]:
                        logger.info(f"[Claude] Used fallback model: {model}")
                    return message.content[0].text.strip()
                except anthropic.APIStatusError as e:
                    if e.status_code == 404:
                        logger.debug(f"[Claude] {model} not available (404), trying next")
                        break
                    if e.status_code in (429, 529) and attempt < MAX_RETRIES:
                        delay = BASE_DELAY * (2 ** attempt)
                        logger.info(
                            f"[Claude] {model} returned {e.status_code} "
                            f"(attempt {attempt + 1}), retrying in {delay}s..."
                        )
                        time.sleep(delay)
                        continue
                    logger.warning(f"[Claude] {model} failed: {e.status_code}")
                    break
                except Exception as e:
                    logger.warning(f"[Claude] {model} error: {e}")
                    break

        logger.warning("[Claude] All models exhausted, returning empty")
        return ""

    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _call_sync)


def build_research_context(
    prospect: Mapping[str, Any], website: WebsiteExtract, places: Optional[PlacesResult] = None
) -> str:
    info = website.property_info
    location = ", ".join(p for p in (prospect.get("city"), prospect.get("country")) if p) or "Unknown"
    parts = [f"Property: {prospect.get('name', '')}", f"Location: {location}"]

    if prospect.get("source_job_title"):
        parts.append(f"Hiring for: {prospect['source_job_title']}")
    if places and places.full_address:
        parts.append(f"Address: {places.full_address}")
    if info.star_rating:
        parts.append(f"Star Rating: {info.star_rating} stars")
    if info.room_count:
        parts.append(f"Rooms: {info.room_count}")
    parts.append(f"Chain: {info.chain_brand}" if info.chain_brand else "Type: Independent property")
    if website.team_members:
        people = ", ".join(f"{m.name} ({m.title})" for m in website.team_members[:5])
        parts.append(f"Key People Found: {people}")
    if website.emails:
        parts.append(f"Emails Found: {', '.join(website.emails[:3])}")
    if info.amenities:
        parts.append(f"Amenities: {', '.join(info.amenities)}")
    if website.social_links.linkedin:
        parts.append("Has LinkedIn presence")
    return "\n".join(parts)


def generate_basic_notes(prospect: Mapping[str, Any], website: WebsiteExtract) -> str:
    notes: list[str] = []
    info = website.property_info

    if prospect.get("source_job_title"):
        notes.append(f"Found via job posting for {prospect['source_job_title']} - indicates active hiring/growth.")

    key_contact = next(
        (m for m in website.team_members if "general manager" in m.title.lower() or "director" in m.title.lower()),
        None,
    )
    if key_contact:
        notes.append(f"Key contact: {key_contact.name} ({key_contact.title})")

    if info.chain_brand:
        notes.append(f"Part of {info.chain_brand} chain - may need corporate approval.")
    else:
        notes.append("Independent property - faster decision making likely.")

    if info.star_rating and info.star_rating >= 4:
        notes.append(f"Luxury {info.star_rating}-star property - quality focused.")

    if "spa" in info.amenities:
        notes.append("Has spa - complex operations, good fit for automation.")

    return "\n".join(notes) or DEFAULT_NOTE


async def generate_research_notes(
    prospect: Mapping[str, Any],
    website: WebsiteExtract,
    places: Optional[PlacesResult] = None,
    api_key: str = "",
) -> str:
    if not api_key:
        return generate_basic_notes(prospect, website)

    context = build_research_context(prospect, website, places)
    notes = await call_claude_async(context, api_key, max_tokens=300, system=NOTES_SYSTEM_PROMPT)
    return notes or generate_basic_notes(prospect, website)
