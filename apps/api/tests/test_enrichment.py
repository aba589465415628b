"""
Tests for the enrichment pipeline: run_enrichment over a mocked hotel site,
and the persistence wrappers over a fake async session.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager

import httpx
import pytest

from conftest import FakeSession, hotel_site_handler, html_response
from prospector.config import Settings
from prospector.models.prospect import Activity, PipelineStage, Prospect, Tier
from prospector.services import enrichment_service, verification_service
from prospector.services.enrichment_service import (
    ENRICHED_ACTIVITY_TITLE,
    enrich_batch,
    enrich_prospect,
    get_enrichment_status,
    run_enrichment,
)

GRAND_HOTEL = {
    "name": "Grand Hotel Zurich",
    "city": "Zurich",
    "country": "Switzerland",
    "website": "https://www.grandhotel.com",
    "source_job_title": "Revenue Manager",
    "tags": ["imported"],
}


def _config(**overrides):
    values = {
        "ANTHROPIC_API_KEY": "",
        "APOLLO_API_KEY": "",
        "HUNTER_API_KEY": "",
        "GOOGLE_PLACES_API_KEY": "",
        "PROXY_MODE": "none",
        "ENRICH_BATCH_SIZE": 2,
        "ENRICH_BATCH_DELAY": 0.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def mx_ok(monkeypatch):
    async def lookup(domain):
        return f"mx.{domain}"

    monkeypatch.setattr(verification_service, "lookup_mx", lookup)


@pytest.fixture
def mx_missing(monkeypatch):
    async def lookup(domain):
        return None

    monkeypatch.setattr(verification_service, "lookup_mx", lookup)


@pytest.mark.integration
class TestRunEnrichment:

    def test_full_pipeline(self, run_http, mx_ok):
        outcome = run_http(hotel_site_handler, lambda f: run_enrichment(GRAND_HOTEL, f, _config()))
        updates = outcome.updates

        assert updates["email"] == "anna.weber@grandhotel.com"
        assert updates["phone"] == "+442079460958"
        assert updates["contact_name"] == "Anna Weber"
        assert updates["contact_title"] == "General Manager"
        assert updates["linkedin_url"] == "https://www.linkedin.com/company/grand-hotel-zurich"
        assert updates["star_rating"] == 5
        assert updates["estimated_rooms"] == 120
        assert "chain_affiliation" not in updates
        assert "website" not in updates
        assert outcome.tags == ["independent", "luxury", "spa", "has-contact"]
        assert updates["tags"] == ["has-contact", "imported", "independent", "luxury", "spa"]
        assert "Key contact: Anna Weber (General Manager)" in updates["notes"]

        assert outcome.verification.status == "unverified"
        assert outcome.score.total == 95
        assert outcome.score.breakdown["growth_focused"] == 10
        assert updates["score"] == 95
        assert updates["tier"] == Tier.hot

    def test_undeliverable_email_is_dropped(self, run_http, mx_missing):
        outcome = run_http(hotel_site_handler, lambda f: run_enrichment(GRAND_HOTEL, f, _config()))

        assert "email" not in outcome.updates
        assert outcome.verification.status == "no_mx"
        assert outcome.updates["contact_name"] == "Anna Weber"
        assert outcome.score.total == 80

    def test_existing_email_is_not_reverified(self, run_http, mx_missing):
        prospect = {**GRAND_HOTEL, "email": "sales@grandhotel.com"}
        outcome = run_http(hotel_site_handler, lambda f: run_enrichment(prospect, f, _config()))

        assert outcome.verification is None
        assert "email" not in outcome.updates

    def test_website_discovered_by_search(self, run_http, mx_ok):
        search_page = """
            <div class="result">
              <a class="result__a" href="https://www.booking.com/hotel/grand.html">Booking</a>
            </div>
            <div class="result">
              <a class="result__a" href="https://www.grandhotel.com/en/">Grand Hotel Zurich</a>
            </div>
        """

        def handler(request):
            if request.url.host == "html.duckduckgo.com" and "official site" in request.url.params["q"]:
                return html_response(search_page)
            return hotel_site_handler(request)

        prospect = {k: v for k, v in GRAND_HOTEL.items() if k != "website"}
        outcome = run_http(handler, lambda f: run_enrichment(prospect, f, _config()))

        assert outcome.updates["website"] == "https://www.grandhotel.com"
        assert outcome.updates["email"] == "anna.weber@grandhotel.com"

    def test_places_lookup_supplies_website(self, run_http, mx_ok):
        def handler(request):
            if request.url.host == "places.googleapis.com":
                return httpx.Response(200, json={"places": [{
                    "id": "ChIJ123",
                    "formattedAddress": "Bahnhofstrasse 1, 8001 Zurich",
                    "websiteUri": "https://www.grandhotel.com/",
                }]})
            return hotel_site_handler(request)

        prospect = {k: v for k, v in GRAND_HOTEL.items() if k != "website"}
        outcome = run_http(handler, lambda f: run_enrichment(prospect, f, _config(GOOGLE_PLACES_API_KEY="gkey")))

        assert outcome.updates["google_place_id"] == "ChIJ123"
        assert outcome.updates["full_address"] == "Bahnhofstrasse 1, 8001 Zurich"
        assert outcome.updates["website"] == "https://www.grandhotel.com/"
        assert outcome.score.breakdown["google_verified"] == 5

    def test_unreachable_site_still_scores(self, run_http):
        outcome = run_http(
            lambda r: httpx.Response(503),
            lambda f: run_enrichment({"name": "Hotel Alpina", "website": "https://hotel-alpina.ch"}, f, _config()),
        )

        assert "contact_name" not in outcome.updates
        assert outcome.tags == ["independent", "needs-contact-discovery"]
        assert outcome.updates["notes"] == "Independent property - faster decision making likely."
        assert outcome.score.total == 10
        assert outcome.updates["tier"] == Tier.cold


def _prospect(stage=PipelineStage.new, **fields):
    values = {
        "id": uuid.uuid4(),
        "name": "Grand Hotel Zurich",
        "city": "Zurich",
        "website": "https://www.grandhotel.com",
        "stage": stage,
        "score": 0,
        "tier": Tier.cold,
        "tags": [],
    }
    values.update(fields)
    return Prospect(**values)


@pytest.mark.integration
class TestPersistence:

    def test_enrich_prospect_writes_fields_and_activity(self, run_http, registry, mx_ok):
        prospect = _prospect()
        session = FakeSession(prospect)

        result = run_http(
            hotel_site_handler,
            lambda f: enrich_prospect(session, str(prospect.id), registry, fetcher=f, config=_config()),
        )

        assert result["status"] == "enriched"
        assert result["email"] == "anna.weber@grandhotel.com"
        assert result["confidence"] == "high"
        assert prospect.stage == PipelineStage.researching
        assert prospect.contact_name == "Anna Weber"
        assert prospect.tier == Tier.hot
        assert session.commits == 1

        [activity] = session.added
        assert isinstance(activity, Activity)
        assert activity.title == ENRICHED_ACTIVITY_TITLE
        assert activity.prospect_id == prospect.id
        assert activity.metadata_["email_source"] == "website_scrape"
        assert "Contact: Anna Weber" in activity.description

    def test_prospects_past_new_are_skipped(self, registry):
        prospect = _prospect(stage=PipelineStage.outreach)
        session = FakeSession(prospect)

        result = asyncio.run(enrich_prospect(session, str(prospect.id), registry))

        assert result == {"status": "skipped", "prospect_id": str(prospect.id), "stage": "outreach"}
        assert session.added == []
        assert session.commits == 0

    def test_missing_prospect_raises(self, registry):
        with pytest.raises(ValueError, match="not found"):
            asyncio.run(enrich_prospect(FakeSession(None), str(uuid.uuid4()), registry))

    def test_status_before_and_after(self):
        prospect = _prospect(stage=PipelineStage.researching, contact_name="Anna Weber", score=95, tier=Tier.hot)
        activity = Activity(
            prospect_id=prospect.id, type="note", title=ENRICHED_ACTIVITY_TITLE,
            metadata_={"confidence": "high"},
        )

        status = asyncio.run(get_enrichment_status(FakeSession(prospect, None), str(prospect.id)))
        assert status == {"status": "not_started", "stage": "researching", "prospect": None}

        status = asyncio.run(get_enrichment_status(FakeSession(prospect, activity), str(prospect.id)))
        assert status["status"] == "enriched"
        assert status["details"] == {"confidence": "high"}
        assert status["prospect"]["contact_name"] == "Anna Weber"
        assert status["prospect"]["tier"] == "hot"

    def test_enrich_batch_counts_outcomes(self, monkeypatch, registry, mx_ok):
        prospects = {
            "new": _prospect(),
            "done": _prospect(stage=PipelineStage.won),
        }
        missing = str(uuid.uuid4())
        ids = [str(prospects["new"].id), str(prospects["done"].id), missing]
        by_id = {str(p.id): p for p in prospects.values()}
        requested = []

        @asynccontextmanager
        async def fake_fetcher(reg, config=None):
            async with httpx.AsyncClient(transport=httpx.MockTransport(hotel_site_handler)) as client:
                fetcher = enrichment_service.Fetcher(client, reg, retries=0)
                yield fetcher

        def session_factory():
            pid = ids[len(requested)]
            requested.append(pid)
            return FakeSession(by_id.get(pid))

        monkeypatch.setattr(enrichment_service, "open_fetcher", fake_fetcher)

        summary = asyncio.run(enrich_batch(ids, registry, session_factory=session_factory, config=_config()))

        assert summary["total"] == 3
        assert summary["enriched"] == 1
        assert summary["skipped"] == 1
        assert summary["failed"] == 1
        assert [r["status"] for r in summary["results"]] == ["enriched", "skipped", "error"]
        assert summary["results"][2]["prospect_id"] == missing
