"""
Enrichment Router
Endpoints for enriching prospects with decision-maker contacts and property data.
"""
import uuid
import logging

from fastapi import APIRouter, Depends, HTTPException

from prospector.config import settings
from prospector.dependencies import get_db, get_circuit_registry
from prospector.schemas.enrichment import BatchEnrichRequest, ContactFinderResult, FindEmailRequest
from prospector.services.circuit_breaker import CircuitRegistry
from prospector.services.contact_finder import find_decision_maker_contact
from prospector.services.enrichment_service import (
    enrich_batch,
    enrich_prospect,
    get_enrichment_status,
    open_fetcher,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/prospect/{prospect_id}")
async def enrich_single_prospect(
    prospect_id: uuid.UUID,
    db=Depends(get_db),
    registry: CircuitRegistry = Depends(get_circuit_registry),
):
    """Enrich a single prospect: website crawl, contact discovery, scoring."""
    try:
        return await enrich_prospect(db, str(prospect_id), registry)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"[Enrichment] Unexpected error: {e}")
        raise HTTPException(status_code=500, detail="Enrichment failed")


@router.post("/batch")
async def enrich_prospect_batch(
    payload: BatchEnrichRequest,
    registry: CircuitRegistry = Depends(get_circuit_registry),
):
    """Enrich several prospects in small rate-limited batches."""
    try:
        return await enrich_batch(payload.prospect_ids, registry)
    except Exception as e:
        logger.error(f"[Enrichment] Unexpected batch error: {e}")
        raise HTTPException(status_code=500, detail="Batch enrichment failed")


@router.get("/prospect/{prospect_id}/status")
async def get_prospect_enrichment_status(
    prospect_id: uuid.UUID,
    db=Depends(get_db),
):
    try:
        return await get_enrichment_status(db, str(prospect_id))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/find-email", response_model=ContactFinderResult)
async def find_email(
    payload: FindEmailRequest,
    registry: CircuitRegistry = Depends(get_circuit_registry),
):
    """Find a decision-maker email for a hotel without touching stored prospects."""
    try:
        async with open_fetcher(registry) as fetcher:
            return await find_decision_maker_contact(
                fetcher,
                payload.hotel_name,
                payload.website,
                city=payload.city,
                apollo_api_key=settings.APOLLO_API_KEY,
                allow_generic_fallback=settings.ALLOW_GENERIC_FALLBACK,
                max_pages=settings.CRAWL_MAX_PAGES,
                site_timeout=settings.SITE_TIMEOUT,
                search_timeout=settings.SEARCH_TIMEOUT,
                whois_timeout=settings.WHOIS_TIMEOUT,
                apollo_timeout=settings.APOLLO_TIMEOUT,
            )
    except Exception as e:
        logger.error(f"[Enrichment] find-email failed for {payload.hotel_name}: {e}")
        raise HTTPException(status_code=500, detail="Email lookup failed")
