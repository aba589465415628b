from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from typing import Optional
import logging
import uuid
from prospector.models.prospect import Prospect, PipelineStage, Tier
from prospector.schemas.prospect import ProspectCreate, ProspectUpdate, ScoreBreakdown
from prospector.services.scoring_service import calculate_score

logger = logging.getLogger(__name__)


def apply_score(prospect: Prospect) -> ScoreBreakdown:
    score = calculate_score(prospect.to_dict())
    prospect.score = score.total
    prospect.score_breakdown = score.breakdown
    prospect.tier = score.tier
    return score


class ProspectService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_prospects(
        self,
        tier: Optional[Tier] = None,
        stage: Optional[PipelineStage] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Prospect]:
        q = select(Prospect)

        if tier:
            q = q.where(Prospect.tier == tier)
        if stage:
            q = q.where(Prospect.stage == stage)
        if search:
            term = f"%{search}%"
            q = q.where(
                or_(
                    Prospect.name.ilike(term),
                    Prospect.city.ilike(term),
                    Prospect.country.ilike(term),
                    Prospect.contact_name.ilike(term),
                )
            )

        q = q.order_by(Prospect.score.desc(), Prospect.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def get_by_id(self, prospect_id: uuid.UUID) -> Optional[Prospect]:
        result = await self.db.execute(select(Prospect).where(Prospect.id == prospect_id))
        return result.scalar_one_or_none()

    async def _get_or_404(self, prospect_id: uuid.UUID) -> Prospect:
        prospect = await self.get_by_id(prospect_id)
        if not prospect:
            from fastapi import HTTPException
            raise HTTPException(status_code=404, detail="Prospect not found")
        return prospect

    async def create_prospect(self, payload: ProspectCreate) -> Prospect:
        prospect = Prospect(**payload.model_dump())
        apply_score(prospect)
        self.db.add(prospect)
        await self.db.commit()
        await self.db.refresh(prospect)
        return prospect

    async def update_prospect(self, prospect_id: uuid.UUID, payload: ProspectUpdate) -> Prospect:
        prospect = await self._get_or_404(prospect_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(prospect, field, value)
        apply_score(prospect)
        await self.db.commit()
        await self.db.refresh(prospect)
        return prospect

    async def delete_prospect(self, prospect_id: uuid.UUID) -> None:
        prospect = await self._get_or_404(prospect_id)
        await self.db.delete(prospect)
        await self.db.commit()

    async def rescore(self, prospect_id: uuid.UUID) -> ScoreBreakdown:
        prospect = await self._get_or_404(prospect_id)
        score = apply_score(prospect)
        await self.db.commit()
        return score

    async def rescore_all(self) -> dict:
        result = await self.db.execute(select(Prospect))
        prospects = list(result.scalars().all())
        changed = 0
        for prospect in prospects:
            before = (prospect.score, prospect.tier)
            score = apply_score(prospect)
            if before != (score.total, score.tier):
                changed += 1
        await self.db.commit()
        logger.info(f"[Scoring] Rescored {len(prospects)} prospects, {changed} changed")
        return {"total": len(prospects), "changed": changed}
