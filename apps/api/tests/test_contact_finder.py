import httpx
import pytest

from conftest import hotel_site_handler, html_response
from prospector.schemas.enrichment import CandidateSource, ConfidenceScore, EmailSource, WebsiteExtract
from prospector.services.contact_finder import REGISTRANT_TITLE, find_decision_maker_contact


@pytest.mark.integration
class TestFindDecisionMakerContact:

    def test_team_page_email_is_matched(self, run_http):
        result = run_http(
            hotel_site_handler,
            lambda f: find_decision_maker_contact(f, "Grand Hotel Zurich", "https://www.grandhotel.com", city="Zurich"),
        )

        assert result.domain == "grandhotel.com"
        assert result.apollo_source == "no_api_key"
        assert result.whois is None
        assert [(c.name, c.source) for c in result.candidates] == [("Anna Weber", CandidateSource.website)]

        enrichment = result.enrichment
        assert enrichment.contact_name == "Anna Weber"
        assert enrichment.contact_role == "General Manager"
        assert enrichment.validated_email == "anna.weber@grandhotel.com"
        assert enrichment.email_pattern_source == EmailSource.website_scrape
        assert enrichment.confidence_score == ConfidenceScore.high

    def test_whois_registrant_and_apollo_join_the_pool(self, run_http):
        def handler(request):
            host = request.url.host
            if host == "rdap.verisign.com":
                return httpx.Response(200, json={"entities": [{
                    "roles": ["registrant"],
                    "vcardArray": ["vcard", [
                        ["fn", {}, "text", "Peter Keller"],
                        ["email", {}, "text", "pk@hotel-keller.com"],
                    ]],
                }]})
            if host == "api.apollo.io":
                return httpx.Response(200, json={"people": [
                    {"name": "Sofia Lind", "title": "Owner", "email": "sofia.lind@hotel-keller.com"},
                ]})
            if host == "www.hotel-keller.com":
                return html_response("<html><body><p>Welcome</p></body></html>")
            return html_response("<html><body></body></html>")

        result = run_http(
            handler,
            lambda f: find_decision_maker_contact(f, "Hotel Keller", "https://www.hotel-keller.com", apollo_api_key="k"),
        )

        by_name = {c.name: c for c in result.candidates}
        assert by_name["Peter Keller"].title == REGISTRANT_TITLE
        assert by_name["Peter Keller"].source == CandidateSource.whois
        assert by_name["Sofia Lind"].source == CandidateSource.apollo
        assert result.apollo_source == "Apollo.io"
        # Owner outranks a registrant; Apollo's own address keeps its provenance
        assert result.enrichment.contact_name == "Sofia Lind"
        assert result.enrichment.email_pattern_source == EmailSource.apollo
        assert "pk@hotel-keller.com" in result.enrichment.all_emails_found

    def test_prefetched_website_skips_the_crawl(self, run_http):
        hosts = []

        def handler(request):
            hosts.append(request.url.host)
            return httpx.Response(404)

        website = WebsiteExtract(emails=["info@grandhotel.com"])
        result = run_http(
            handler,
            lambda f: find_decision_maker_contact(f, "Grand Hotel", "https://www.grandhotel.com", website=website),
        )
        assert "www.grandhotel.com" not in hosts
        assert result.website == website
        assert result.enrichment.validated_email is None
        assert result.enrichment.fallback_method is not None

    def test_no_website(self, run_http):
        result = run_http(
            lambda r: html_response("<html><body></body></html>"),
            lambda f: find_decision_maker_contact(f, "Grand Hotel", None),
        )
        assert result.domain is None
        assert result.candidates == []
        assert result.enrichment.validated_email is None
