"""
Google Places (New) text search.
Resolves a hotel to its place id, formatted address and website.
"""
from __future__ import annotations

import logging
from typing import Optional

from prospector.schemas.enrichment import PlacesResult
from prospector.services.http_client import Fetcher

logger = logging.getLogger(__name__)

SERVICE = "google_places"
PLACES_SEARCH_URL = "https://places.googleapis.com/v1/places:searchText"
FIELD_MASK = "places.id,places.displayName,places.formattedAddress,places.websiteUri"


async def lookup_place(
    fetcher: Fetcher,
    api_key: str,
    name: str,
    city: Optional[str] = None,
    country: Optional[str] = None,
    timeout: float = 15.0,
) -> Optional[PlacesResult]:
    if not api_key or not name:
        return None

    query = " ".join(part for part in (name, "hotel", city, country) if part)
    resp = await fetcher.fetch(
        PLACES_SEARCH_URL,
        service=SERVICE,
        method="POST",
        timeout=timeout,
        headers={
            "Content-Type": "application/json",
            "X-Goog-Api-Key": api_key,
            "X-Goog-FieldMask": FIELD_MASK,
        },
        json={"textQuery": query, "maxResultCount": 1},
        use_proxy=False,
    )
    if resp is None or not resp.ok:
        return None

    try:
        places = resp.json().get("places") or []
    except (ValueError, AttributeError) as e:
        logger.debug(f"[Places] {name}: unreadable response: {e}")
        return None

    if not places or not places[0].get("id"):
        logger.info(f"[Places] No match for {query}")
        return None

    place = places[0]
    return PlacesResult(
        google_place_id=place["id"],
        full_address=place.get("formattedAddress"),
        website=place.get("websiteUri"),
    )
