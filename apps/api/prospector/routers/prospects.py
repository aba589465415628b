from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid
from prospector.dependencies import get_db
from prospector.schemas.prospect import ProspectCreate, ProspectUpdate, ProspectResponse, ScoreBreakdown
from prospector.services.prospect_service import ProspectService
from prospector.models.prospect import PipelineStage, Tier

router = APIRouter()


@router.get("/", response_model=list[ProspectResponse])
async def list_prospects(
    tier: Optional[Tier] = Query(None),
    stage: Optional[PipelineStage] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    limit: int = Query(50, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    svc = ProspectService(db)
    return await svc.list_prospects(tier=tier, stage=stage, search=search, limit=limit, offset=offset)


@router.post("/", response_model=ProspectResponse, status_code=201)
async def create_prospect(
    payload: ProspectCreate,
    db: AsyncSession = Depends(get_db),
):
    svc = ProspectService(db)
    return await svc.create_prospect(payload)


@router.post("/rescore")
async def rescore_all_prospects(db: AsyncSession = Depends(get_db)):
    svc = ProspectService(db)
    return await svc.rescore_all()


@router.get("/{prospect_id}", response_model=ProspectResponse)
async def get_prospect(
    prospect_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    svc = ProspectService(db)
    prospect = await svc.get_by_id(prospect_id)
    if not prospect:
        raise HTTPException(status_code=404, detail="Prospect not found")
    return prospect


@router.patch("/{prospect_id}", response_model=ProspectResponse)
async def update_prospect(
    prospect_id: uuid.UUID,
    payload: ProspectUpdate,
    db: AsyncSession = Depends(get_db),
):
    svc = ProspectService(db)
    return await svc.update_prospect(prospect_id, payload)


@router.delete("/{prospect_id}", status_code=204)
async def delete_prospect(
    prospect_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    svc = ProspectService(db)
    await svc.delete_prospect(prospect_id)


@router.post("/{prospect_id}/score", response_model=ScoreBreakdown)
async def score_prospect(
    prospect_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Recompute score and tier from the prospect's current fields."""
    svc = ProspectService(db)
    return await svc.rescore(prospect_id)
