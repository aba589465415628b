from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CandidateSource(str, enum.Enum):
    website = "website"
    search = "search"
    whois = "whois"
    apollo = "apollo"


class EmailSource(str, enum.Enum):
    website_scrape = "website_scrape"
    apollo = "apollo"
    common_patterns = "common_patterns"
    generic_fallback = "generic_fallback"
    none = "none"


class ConfidenceScore(str, enum.Enum):
    high = "high"
    medium = "medium"
    low = "low"


class TeamMember(BaseModel):
    """A name/title pair as found on a page. Not validated."""

    name: str
    title: str
    email: Optional[str] = None


class CandidateName(BaseModel):
    name: str
    title: str
    source: CandidateSource
    email: Optional[str] = None
    linkedin_url: Optional[str] = None


class SocialLinks(BaseModel):
    linkedin: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    tripadvisor: Optional[str] = None
    booking: Optional[str] = None


class PropertyInfo(BaseModel):
    star_rating: Optional[int] = None
    room_count: Optional[int] = None
    chain_brand: Optional[str] = None
    amenities: list[str] = Field(default_factory=list)
    description: Optional[str] = None


class WebsiteExtract(BaseModel):
    model_config = ConfigDict(frozen=True)

    emails: list[str] = Field(default_factory=list)
    phones: list[str] = Field(default_factory=list)
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    property_info: PropertyInfo = Field(default_factory=PropertyInfo)
    team_members: list[TeamMember] = Field(default_factory=list)
    contact_page_url: Optional[str] = None


class EnrichmentResult(BaseModel):
    hotel_name: str = ""
    contact_name: str = ""
    contact_role: str = ""
    validated_email: Optional[str] = None
    email_pattern_source: EmailSource = EmailSource.none
    confidence_score: ConfidenceScore = ConfidenceScore.low
    all_emails_found: list[str] = Field(default_factory=list)
    fallback_method: Optional[str] = None


class WhoisInfo(BaseModel):
    registrant_name: Optional[str] = None
    registrant_email: Optional[str] = None
    registrant_org: Optional[str] = None


class ApolloContact(BaseModel):
    name: str
    title: str = "Unknown"
    email: Optional[str] = None
    linkedin_url: Optional[str] = None


class ApolloResult(BaseModel):
    contacts: list[ApolloContact] = Field(default_factory=list)
    source: str = "no_api_key"


class PlacesResult(BaseModel):
    google_place_id: str
    full_address: Optional[str] = None
    website: Optional[str] = None


class EmailVerification(BaseModel):
    email: str
    valid: bool = False
    status: str = "unverified"
    score: Optional[int] = None


class SearchResult(BaseModel):
    url: str
    title: str


class ContactFinderResult(BaseModel):
    domain: Optional[str] = None
    website: WebsiteExtract = Field(default_factory=WebsiteExtract)
    candidates: list[CandidateName] = Field(default_factory=list)
    whois: Optional[WhoisInfo] = None
    apollo_source: str = "no_api_key"
    enrichment: EnrichmentResult = Field(default_factory=EnrichmentResult)


class FindEmailRequest(BaseModel):
    hotel_name: str
    website: Optional[str] = None
    city: Optional[str] = None


class BatchEnrichRequest(BaseModel):
    prospect_ids: list[str] = Field(default_factory=list, max_length=200)
