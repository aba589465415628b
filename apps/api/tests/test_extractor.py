import json

import pytest

from prospector.schemas.enrichment import TeamMember
from prospector.services import extractor


@pytest.mark.unit
class TestExtractNeverRaises:

    def test_empty_html_gives_empty_extract(self):
        result = extractor.extract("")

        assert result.emails == []
        assert result.phones == []
        assert result.team_members == []
        assert result.social_links.model_dump() == {k: None for k in result.social_links.model_dump()}
        assert result.property_info.star_rating is None
        assert result.property_info.amenities == []
        assert result.contact_page_url is None

    @pytest.mark.parametrize("html", [
        None,
        "<<<>>>",
        "<script type='application/ld+json'>{not json</script>",
        "<script type='application/ld+json'>[1, \"x\", null]</script>",
        "<a href='tel:'>call</a><a href='mailto:'>mail</a>",
        "\x00\x01 binary junk \xff",
    ])
    def test_malformed_input(self, html):
        result = extractor.extract(html)
        assert isinstance(result.emails, list)

    def test_sub_extraction_failure_is_isolated(self, monkeypatch):
        def boom(html):
            raise RuntimeError("broken")

        monkeypatch.setattr(extractor, "extract_team_members", boom)
        result = extractor.extract("<p>Write to anna.weber@grandhotel.ch</p>")

        assert result.team_members == []
        assert result.emails == ["anna.weber@grandhotel.ch"]


@pytest.mark.unit
class TestEmails:

    def test_filters_placeholders_and_junk(self):
        text = """
            Anna.Weber@GrandHotel.ch noreply@grandhotel.ch logo@2x.png info@example.com
            john@grandhotel.ch privacy@grandhotel.ch youremail@grandhotel.ch
            errors@sentry.io anna.weber@grandhotel.ch sales@grandhotel.ch
        """
        assert extractor.find_emails(text) == ["anna.weber@grandhotel.ch", "sales@grandhotel.ch"]

    def test_never_returns_excluded_strings(self):
        text = " ".join(f"x{i}@{d}" for i, d in enumerate(["test.com", "domain.com", "wixpress.com", "cloudflare.com"]))
        assert extractor.find_emails(text) == []

    def test_url_encoded_mailto_prefix_is_stripped(self):
        assert extractor.find_emails('<a href="mailto:%20info@hotel-alpina.ch">') == ["info@hotel-alpina.ch"]

    def test_prioritize_emails(self):
        emails = ["anna@h.com", "reception@h.com", "info@h.com", "sales@h.com", "gm@h.com"]
        assert extractor.prioritize_emails(emails) == [
            "gm@h.com", "sales@h.com", "info@h.com", "reception@h.com", "anna@h.com",
        ]


@pytest.mark.unit
class TestPhones:

    def test_international_number(self):
        assert extractor.find_phones("Call us: +44 20 7946 0958") == ["+442079460958"]

    def test_short_numbers_ignored(self):
        assert extractor.find_phones("Since 1998, 120 rooms") == []

    def test_tel_links_included_and_deduplicated(self):
        html = '<a href="tel:+442079460958">Call</a><p>+44 20 7946 0958</p>'
        assert extractor.extract(html).phones == ["+442079460958"]

    def test_capped_at_five(self):
        text = " ".join(f"+44 20 7946 09{i:02d}" for i in range(8))
        assert len(extractor.find_phones(text)) == 5


@pytest.mark.unit
class TestSocialAndProperty:

    def test_social_links(self):
        html = """
            <a href="https://www.linkedin.com/company/grand-hotel-zurich">in</a>
            <a href="https://www.instagram.com/grandhotelzurich/">ig</a>
            <a href="https://www.tripadvisor.com/Hotel_Review-g1-d2">ta</a>
        """
        links = extractor.find_social_links(html)
        assert links.linkedin == "https://www.linkedin.com/company/grand-hotel-zurich"
        assert links.instagram == "https://www.instagram.com/grandhotelzurich/"
        assert links.tripadvisor.startswith("https://www.tripadvisor.com/")
        assert links.facebook is None

    def test_property_info(self):
        html = """
            <html><head><meta name="description" content="A lakeside retreat."></head>
            <body><p>Luxury 5-star hotel with 120 rooms, spa, pool and a Michelin restaurant.</p></body></html>
        """
        info = extractor.extract_property_info(html)
        assert info.star_rating == 5
        assert info.room_count == 120
        assert info.description == "A lakeside retreat."
        assert {"spa", "pool", "restaurant", "michelin"} <= set(info.amenities)
        assert info.chain_brand is None

    def test_star_rating_fallbacks(self):
        assert extractor.extract_property_info("<p>Hotel Sterne 4 Superior</p>").star_rating == 4
        assert extractor.extract_property_info("<p>★★★★</p>").star_rating == 4
        assert extractor.extract_property_info("<p>4 étoiles</p>").star_rating == 4

    def test_chain_brand(self):
        info = extractor.extract_property_info("<p>Part of the Marriott Bonvoy family</p>")
        assert info.chain_brand == "Marriott"

    def test_description_is_truncated(self):
        html = f'<meta name="description" content="{"x" * 500}">'
        assert len(extractor.extract_property_info(html).description) == 300


@pytest.mark.unit
class TestTeamMembers:

    def test_json_ld_graph(self):
        payload = {
            "@context": "https://schema.org",
            "@graph": [
                {"@type": "WebSite", "name": "Grand Hotel"},
                {
                    "@type": "Hotel",
                    "employee": [
                        {"@type": "Person", "name": "Anna Weber", "jobTitle": "General Manager",
                         "email": "mailto:Anna.Weber@grandhotel.ch"},
                        {"@type": "Person", "name": "Marco Rossi"},
                    ],
                },
            ],
        }
        html = f'<script type="application/ld+json">{json.dumps(payload)}</script>'
        members = extractor.extract_team_members(html)

        by_name = {m.name: m for m in members}
        assert by_name["Anna Weber"].title == "General Manager"
        assert by_name["Anna Weber"].email == "anna.weber@grandhotel.ch"
        assert by_name["Marco Rossi"].title == "Team Member"

    def test_json_ld_list_with_founder(self):
        payload = [{"@type": "Organization", "founder": {"@type": "Person", "name": "Sofia Lind", "roleName": "Owner"}}]
        html = f'<script type="application/ld+json">{json.dumps(payload)}</script>'
        assert [(m.name, m.title) for m in extractor.extract_team_members(html)] == [("Sofia Lind", "Owner")]

    def test_tag_adjacency(self):
        html = "<div><h3>Marco Rossi</h3><p>Director of Sales</p></div>"
        members = extractor.extract_team_members(html)
        assert [(m.name, m.title) for m in members] == [("Marco Rossi", "Director of Sales")]

    def test_text_patterns(self):
        html = "<p>Anna Weber, General Manager</p><p>Owner: Peter Keller</p>"
        names = {(m.name, m.title) for m in extractor.extract_team_members(html)}
        assert ("Anna Weber", "General Manager") in names
        assert ("Peter Keller", "Owner") in names

    def test_venue_names_dropped(self):
        html = "<p>Grand Hotel Spa, Manager</p>"
        assert extractor.extract_team_members(html) == []

    def test_dedupe_prefers_entry_with_email(self):
        members = [
            TeamMember(name="Anna Weber", title="General Manager"),
            TeamMember(name="anna weber", title="GM", email="anna@h.com"),
        ]
        result = extractor.dedupe_team_members(members)
        assert len(result) == 1
        assert result[0].email == "anna@h.com"
