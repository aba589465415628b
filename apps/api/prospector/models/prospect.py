import uuid
import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Integer, Numeric, Text, ForeignKey, Enum as SAEnum, func
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from prospector.database import Base


class PipelineStage(str, enum.Enum):
    new = "new"
    researching = "researching"
    outreach = "outreach"
    engaged = "engaged"
    meeting = "meeting"
    proposal = "proposal"
    won = "won"
    lost = "lost"


class Tier(str, enum.Enum):
    hot = "hot"
    warm = "warm"
    cold = "cold"


class Prospect(Base):
    __tablename__ = "prospects"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    property_type: Mapped[str | None] = mapped_column(String, nullable=True)

    city: Mapped[str | None] = mapped_column(String, nullable=True)
    country: Mapped[str | None] = mapped_column(String, nullable=True)
    region: Mapped[str | None] = mapped_column(String, nullable=True)
    full_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    website: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String, nullable=True)
    contact_title: Mapped[str | None] = mapped_column(String, nullable=True)

    google_place_id: Mapped[str | None] = mapped_column(String, nullable=True)
    google_rating: Mapped[Decimal | None] = mapped_column(Numeric(2, 1), nullable=True)
    google_review_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    linkedin_url: Mapped[str | None] = mapped_column(String, nullable=True)
    instagram_handle: Mapped[str | None] = mapped_column(String, nullable=True)

    star_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    chain_affiliation: Mapped[str | None] = mapped_column(String, nullable=True)
    estimated_rooms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score_breakdown: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    tier: Mapped[Tier] = mapped_column(
        SAEnum(Tier, name="prospect_tier"),
        nullable=False,
        default=Tier.cold,
    )
    stage: Mapped[PipelineStage] = mapped_column(
        SAEnum(PipelineStage, name="prospect_stage"),
        nullable=False,
        default=PipelineStage.new,
    )

    source: Mapped[str | None] = mapped_column(String, nullable=True)
    source_url: Mapped[str | None] = mapped_column(String, nullable=True)
    source_job_title: Mapped[str | None] = mapped_column(String, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False, server_default=func.now(), onupdate=func.now()
    )

    activities: Mapped[list["Activity"]] = relationship(  # noqa: F821
        "Activity", back_populates="prospect", cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict:
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    prospect_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("prospects.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    prospect: Mapped["Prospect"] = relationship("Prospect", back_populates="activities")
