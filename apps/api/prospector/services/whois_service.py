"""
WHOIS lookup over RDAP.
Only .com domains are supported (Verisign's RDAP server); most registrant
records are privacy-redacted, so a None result is the common case.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from prospector.schemas.enrichment import WhoisInfo
from prospector.services.http_client import Fetcher

logger = logging.getLogger(__name__)

SERVICE = "rdap"
RDAP_COM_URL = "https://rdap.verisign.com/com/v1/domain/{domain}"

_REDACTED_MARKERS = ("redacted", "privacy", "protected", "withheld", "not disclosed")


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or any(m in value.lower() for m in _REDACTED_MARKERS):
        return None
    return value


def _vcard_fields(entity: dict) -> dict[str, str]:
    fields: dict[str, str] = {}
    vcard = entity.get("vcardArray")
    if not isinstance(vcard, list) or len(vcard) < 2 or not isinstance(vcard[1], list):
        return fields
    for prop in vcard[1]:
        if isinstance(prop, list) and len(prop) >= 4 and prop[0] in ("fn", "email", "org"):
            value = prop[3][0] if isinstance(prop[3], list) and prop[3] else prop[3]
            cleaned = _clean(value)
            if cleaned and prop[0] not in fields:
                fields[prop[0]] = cleaned
    return fields


def _find_registrant(entities: list) -> Optional[dict]:
    for entity in entities:
        if not isinstance(entity, dict):
            continue
        if "registrant" in (entity.get("roles") or []):
            return entity
        nested = _find_registrant(entity.get("entities") or [])
        if nested:
            return nested
    return None


def parse_rdap(data: Any) -> Optional[WhoisInfo]:
    if not isinstance(data, dict):
        return None
    registrant = _find_registrant(data.get("entities") or [])
    if not registrant:
        return None
    fields = _vcard_fields(registrant)
    if not fields:
        return None
    return WhoisInfo(
        registrant_name=fields.get("fn"),
        registrant_email=fields.get("email", "").lower() or None,
        registrant_org=fields.get("org"),
    )


async def lookup_whois(fetcher: Fetcher, domain: Optional[str], timeout: float = 5.0) -> Optional[WhoisInfo]:
    if not domain or not domain.lower().endswith(".com"):
        return None

    resp = await fetcher.fetch(
        RDAP_COM_URL.format(domain=domain.lower()),
        service=SERVICE,
        timeout=timeout,
        headers={"Accept": "application/rdap+json"},
        use_proxy=False,
    )
    if resp is None or not resp.ok:
        return None

    try:
        info = parse_rdap(resp.json())
    except (ValueError, TypeError) as e:
        logger.debug(f"[WHOIS] {domain}: unreadable RDAP payload: {e}")
        return None

    if info:
        logger.info(f"[WHOIS] {domain}: registrant {info.registrant_name or info.registrant_org}")
    return info
