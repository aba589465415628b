"""
Apollo.io people search.
Finds hotel leadership contacts by organization name (and domain when known).
Optional: without an API key the adapter returns an empty result tagged
`no_api_key`.
"""
from __future__ import annotations

import logging
from typing import Optional

from prospector.schemas.enrichment import ApolloContact, ApolloResult
from prospector.services.http_client import Fetcher

logger = logging.getLogger(__name__)

SERVICE = "apollo"
APOLLO_SEARCH_URL = "https://api.apollo.io/v1/mixed_people/search"
MAX_CONTACTS = 10

HOTEL_LEADERSHIP_TITLES = [
    "General Manager",
    "Hotel Manager",
    "Operations Manager",
    "Managing Director",
    "Owner",
    "Director of Operations",
    "Revenue Manager",
    "IT Manager",
]


def _contact_from_person(person: dict) -> Optional[ApolloContact]:
    name = person.get("name") or " ".join(
        p for p in (person.get("first_name"), person.get("last_name")) if p
    )
    if not name:
        return None
    email = person.get("email")
    # Apollo returns a placeholder address for contacts it hasn't unlocked
    if email and "email_not_unlocked" in email:
        email = None
    return ApolloContact(
        name=name.strip(),
        title=person.get("title") or "Unknown",
        email=email.lower() if email else None,
        linkedin_url=person.get("linkedin_url"),
    )


async def search_apollo(
    fetcher: Fetcher,
    api_key: str,
    company_name: str,
    domain: Optional[str] = None,
    timeout: float = 15.0,
) -> ApolloResult:
    if not api_key:
        return ApolloResult(source="no_api_key")

    if not fetcher.registry.can_make_request(SERVICE):
        return ApolloResult(source="circuit_open")

    payload: dict = {
        "q_organization_name": company_name,
        "person_titles": HOTEL_LEADERSHIP_TITLES,
        "page": 1,
        "per_page": MAX_CONTACTS,
    }
    if domain:
        payload["organization_domains"] = [domain]

    resp = await fetcher.fetch(
        APOLLO_SEARCH_URL,
        service=SERVICE,
        method="POST",
        timeout=timeout,
        headers={
            "X-Api-Key": api_key,
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
        },
        json=payload,
        use_proxy=False,
    )
    if resp is None or not resp.ok:
        status = resp.status_code if resp is not None else "no response"
        logger.warning(f"[Apollo] People search failed for {company_name}: {status}")
        return ApolloResult(source="apollo_error")

    try:
        people = resp.json().get("people") or []
    except (ValueError, AttributeError) as e:
        logger.warning(f"[Apollo] Unreadable response for {company_name}: {e}")
        return ApolloResult(source="apollo_error")

    contacts = [c for c in (_contact_from_person(p) for p in people[:MAX_CONTACTS] if isinstance(p, dict)) if c]
    logger.info(f"[Apollo] {company_name}: {len(contacts)} contacts")
    return ApolloResult(contacts=contacts, source="Apollo.io")
