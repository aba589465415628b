"""
Lead scoring.
Additive points across five categories (contact quality, online presence,
property quality, market, hiring signal). Each rule inside a category is an
if/elif chain, so a prospect can't double count within it.

  total >= 70  hot
  total >= 40  warm
  otherwise    cold
"""
from __future__ import annotations

import re
from typing import Any, Mapping

from prospector.models.prospect import Tier
from prospector.schemas.prospect import ScoreBreakdown
from prospector.services.heuristics import is_generic_email

HOT_THRESHOLD = 70
WARM_THRESHOLD = 40

LUXURY_CHAINS = [
    "Four Seasons", "Ritz-Carlton", "St. Regis", "Mandarin Oriental",
    "Peninsula", "Aman", "Six Senses", "Rosewood", "Belmond",
]

PREMIUM_MARKETS = [
    "london", "paris", "dubai", "new york", "miami", "singapore",
    "hong kong", "tokyo", "maldives", "monaco", "zurich", "geneva",
]

SENIOR_ROLES = ["general manager", "gm", "director", "ceo", "owner", "managing director", "president"]
GROWTH_ROLES = ["revenue", "marketing", "digital", "sales", "technology", "tech", "innovation"]
OPS_ROLES = ["operations", "f&b", "food", "rooms division"]


def _matches_any(text: str, keywords: list[str]) -> bool:
    return any(re.search(rf"(?<!\w){re.escape(k)}(?!\w)", text) for k in keywords)


def get_tier(total: int) -> Tier:
    if total >= HOT_THRESHOLD:
        return Tier.hot
    if total >= WARM_THRESHOLD:
        return Tier.warm
    return Tier.cold


def calculate_score(prospect: Mapping[str, Any]) -> ScoreBreakdown:
    breakdown: dict[str, int] = {}

    # Contact quality
    email = prospect.get("email")
    if email:
        if is_generic_email(email):
            breakdown["has_generic_email"] = 5
        else:
            breakdown["has_real_email"] = 15
    if prospect.get("contact_name"):
        breakdown["has_contact_person"] = 15
    if prospect.get("phone"):
        breakdown["has_phone"] = 5

    # Online presence
    if prospect.get("website"):
        breakdown["has_website"] = 5
    if prospect.get("linkedin_url"):
        breakdown["has_linkedin"] = 10
    if prospect.get("instagram_handle"):
        breakdown["has_instagram"] = 5
    if prospect.get("google_place_id"):
        breakdown["google_verified"] = 5

    # Property quality
    stars = prospect.get("star_rating") or 0
    if stars >= 5:
        breakdown["five_star"] = 15
    elif stars >= 4:
        breakdown["four_star"] = 10

    chain = (prospect.get("chain_affiliation") or "").strip()
    if not chain or chain.lower() == "independent":
        breakdown["independent"] = 5
    elif any(c.lower() in chain.lower() for c in LUXURY_CHAINS):
        breakdown["luxury_chain"] = 15
    else:
        breakdown["chain_property"] = 5

    # Market
    city = (prospect.get("city") or "").lower()
    if any(market in city for market in PREMIUM_MARKETS):
        breakdown["premium_market"] = 15

    # Hiring signal
    job_title = (prospect.get("source_job_title") or "").lower()
    if _matches_any(job_title, SENIOR_ROLES):
        breakdown["senior_decision_maker"] = 15
    elif _matches_any(job_title, GROWTH_ROLES):
        breakdown["growth_focused"] = 10
    elif _matches_any(job_title, OPS_ROLES):
        breakdown["operations_role"] = 5

    total = sum(breakdown.values())
    return ScoreBreakdown(total=total, breakdown=breakdown, tier=get_tier(total))
