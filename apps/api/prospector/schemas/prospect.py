from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional
from decimal import Decimal
from datetime import datetime
import uuid
from prospector.models.prospect import PipelineStage, Tier


class ScoreBreakdown(BaseModel):
    total: int = 0
    breakdown: dict[str, int] = Field(default_factory=dict)
    tier: Tier = Tier.cold

    @model_validator(mode="after")
    def _total_matches_breakdown(self) -> "ScoreBreakdown":
        if self.total != sum(self.breakdown.values()):
            raise ValueError("total must equal the sum of the breakdown")
        return self


class ProspectCreate(BaseModel):
    name: str
    property_type: Optional[str] = "hotel"
    city: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    full_address: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    contact_name: Optional[str] = None
    contact_title: Optional[str] = None
    google_place_id: Optional[str] = None
    linkedin_url: Optional[str] = None
    instagram_handle: Optional[str] = None
    star_rating: Optional[int] = Field(default=None, ge=1, le=5)
    chain_affiliation: Optional[str] = None
    estimated_rooms: Optional[int] = None
    stage: PipelineStage = PipelineStage.new
    source: Optional[str] = None
    source_url: Optional[str] = None
    source_job_title: Optional[str] = None
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class ProspectUpdate(BaseModel):
    name: Optional[str] = None
    property_type: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    full_address: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    contact_name: Optional[str] = None
    contact_title: Optional[str] = None
    google_place_id: Optional[str] = None
    linkedin_url: Optional[str] = None
    instagram_handle: Optional[str] = None
    star_rating: Optional[int] = Field(default=None, ge=1, le=5)
    chain_affiliation: Optional[str] = None
    estimated_rooms: Optional[int] = None
    stage: Optional[PipelineStage] = None
    source: Optional[str] = None
    source_url: Optional[str] = None
    source_job_title: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[list[str]] = None


class ProspectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    property_type: Optional[str]
    city: Optional[str]
    country: Optional[str]
    region: Optional[str]
    full_address: Optional[str]
    website: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    contact_name: Optional[str]
    contact_title: Optional[str]
    google_place_id: Optional[str]
    google_rating: Optional[Decimal]
    linkedin_url: Optional[str]
    instagram_handle: Optional[str]
    star_rating: Optional[int]
    chain_affiliation: Optional[str]
    estimated_rooms: Optional[int]
    score: int
    score_breakdown: Optional[dict]
    tier: Tier
    stage: PipelineStage
    source: Optional[str]
    source_url: Optional[str]
    source_job_title: Optional[str]
    notes: Optional[str]
    tags: Optional[list[str]]
    created_at: datetime
    updated_at: datetime
