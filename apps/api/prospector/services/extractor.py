"""
HTML Entity Extractor
Pulls contact and property data out of a hotel website page:
  - email addresses and phone numbers
  - social profile links (LinkedIn, Instagram, Facebook, X, TripAdvisor, Booking)
  - property info (star rating, room count, chain brand, description, amenities)
  - named team members with titles (JSON-LD + text patterns)

Pure and synchronous. Every sub-extraction is isolated: if one fails on broken
markup its field comes back empty and the rest of the page is still used.
Names are NOT validated here; the resolver does that.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Callable, Optional, TypeVar

from bs4 import BeautifulSoup

from prospector.schemas.enrichment import PropertyInfo, SocialLinks, TeamMember, WebsiteExtract
from prospector.services.cascade import Strategy, first_success

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Emails
# ---------------------------------------------------------------------------

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")

EMAIL_EXCLUDE = [
    "example.com", "test.com", "email.com", "website.com", "domain.com", "yourdomain.com",
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp",
    "wixpress", "sentry.io", "sentry-next", "cloudflare", "google", "facebook", "twitter",
    "placeholder", "noreply", "no-reply", "donotreply",
    "privacy@", "gdpr@", "unsubscribe@", "abuse@",
]

FAKE_LOCAL_PART_RE = [
    re.compile(r"^(?:john|jane|user|test|demo|sample|admin|webmaster)@", re.IGNORECASE),
    re.compile(r"^(?:your|my|the|a)?email@", re.IGNORECASE),
    re.compile(r"^name@", re.IGNORECASE),
]


def find_emails(text: str) -> list[str]:
    """Lowercased, de-duplicated addresses with placeholders and tracking junk removed."""
    found: list[str] = []
    seen: set[str] = set()
    for match in EMAIL_RE.findall(text or ""):
        email = re.sub(r"^(?:%20)+", "", match).lower().strip(".")
        if email in seen:
            continue
        seen.add(email)
        if any(pattern in email for pattern in EMAIL_EXCLUDE):
            continue
        if any(p.search(email) for p in FAKE_LOCAL_PART_RE):
            continue
        found.append(email)
    return found


_EMAIL_PRIORITIES = [
    re.compile(r"^(?:gm|generalmanager|manager|director)", re.IGNORECASE),
    re.compile(r"^(?:sales|revenue|marketing)", re.IGNORECASE),
    re.compile(r"^(?:info|contact|hello|enquir|reserv)", re.IGNORECASE),
    re.compile(r"^(?:reception|frontdesk|booking)", re.IGNORECASE),
]


def prioritize_emails(emails: list[str]) -> list[str]:
    """Stable sort: management inboxes first, then commercial, then general, then desk."""
    def rank(email: str) -> int:
        for i, pattern in enumerate(_EMAIL_PRIORITIES):
            if pattern.search(email):
                return i
        return len(_EMAIL_PRIORITIES)

    return sorted(emails, key=rank)


# ---------------------------------------------------------------------------
# Phones
# ---------------------------------------------------------------------------

PHONE_RE = re.compile(r"(?:\+|00)?[1-9]\d{0,3}[-.\s]?\(?\d{1,4}\)?[-.\s]?\d{1,4}[-.\s]?\d{1,9}")
MAX_PHONES = 5


def find_phones(text: str) -> list[str]:
    phones: list[str] = []
    for match in PHONE_RE.findall(text or ""):
        phone = re.sub(r"[-.\s()]", "", match)
        digits = phone.lstrip("+")
        if not 10 <= len(digits) <= 15:
            continue
        if phone not in phones:
            phones.append(phone)
        if len(phones) >= MAX_PHONES:
            break
    return phones


# ---------------------------------------------------------------------------
# Social links
# ---------------------------------------------------------------------------

SOCIAL_PATTERNS = {
    "linkedin": re.compile(r"""href=["'](https?://(?:[a-z]{2,3}\.)?linkedin\.com/(?:company|in)/[^"'#?]+)""", re.IGNORECASE),
    "instagram": re.compile(r"""href=["'](https?://(?:www\.)?instagram\.com/[^"'#?]+)""", re.IGNORECASE),
    "facebook": re.compile(r"""href=["'](https?://(?:www\.)?facebook\.com/[^"'#?]+)""", re.IGNORECASE),
    "twitter": re.compile(r"""href=["'](https?://(?:www\.)?(?:twitter|x)\.com/[^"'#?]+)""", re.IGNORECASE),
    "tripadvisor": re.compile(
        r"""href=["'](https?://(?:www\.)?tripadvisor\.(?:com|co\.uk|de|fr|es|it|ch|at|nl)/[^"'#?]+)""", re.IGNORECASE
    ),
    "booking": re.compile(r"""href=["'](https?://(?:www\.)?booking\.com/[^"'#?]+)""", re.IGNORECASE),
}


def find_social_links(html: str) -> SocialLinks:
    links: dict[str, str] = {}
    for platform, pattern in SOCIAL_PATTERNS.items():
        match = pattern.search(html or "")
        if match:
            links[platform] = match.group(1)
    return SocialLinks(**links)


# ---------------------------------------------------------------------------
# Property info
# ---------------------------------------------------------------------------

CHAIN_BRANDS = [
    "Marriott", "Hilton", "IHG", "Hyatt", "Accor", "Wyndham", "Choice Hotels",
    "Best Western", "Radisson", "Four Seasons", "Ritz-Carlton", "St. Regis",
    "W Hotels", "Sheraton", "Westin", "Sofitel", "Novotel", "Mandarin Oriental",
    "The Peninsula", "Aman", "Six Senses", "Rosewood", "Belmond", "Kempinski",
    "Fairmont", "Raffles", "Jumeirah", "One&Only", "COMO Hotels", "Dorchester",
]

AMENITY_KEYWORDS = [
    "spa", "pool", "gym", "fitness", "restaurant", "bar", "wifi",
    "parking", "beach", "golf", "tennis", "concierge", "butler", "michelin",
]

_STAR_WORDS = r"(?:stars?|sterne|étoiles|etoiles|stelle)"


def _star_phrase(text: str) -> Optional[int]:
    match = re.search(r"\b([1-5])\s*-?\s*" + _STAR_WORDS + r"\b", text, re.IGNORECASE)
    return int(match.group(1)) if match else None


def _star_phrase_reversed(text: str) -> Optional[int]:
    match = re.search(r"\b" + _STAR_WORDS + r"\s*:?\s*([1-5])\b", text, re.IGNORECASE)
    return int(match.group(1)) if match else None


def _star_glyphs(text: str) -> Optional[int]:
    match = re.search(r"[★☆]{3,5}", text)
    return len(match.group(0)) if match else None


STAR_RATING_STRATEGIES: list[Strategy[int]] = [
    Strategy("star_phrase", _star_phrase),
    Strategy("star_phrase_reversed", _star_phrase_reversed),
    Strategy("star_glyphs", _star_glyphs),
]


def _room_count(text: str) -> Optional[int]:
    match = re.search(r"\b(\d{1,4})\s*(?:rooms|zimmer|chambres|camere|suites)\b", text, re.IGNORECASE)
    if not match:
        return None
    count = int(match.group(1))
    return count or None


def _chain_brand(text: str) -> Optional[str]:
    for brand in CHAIN_BRANDS:
        if re.search(r"(?<!\w)" + re.escape(brand) + r"(?!\w)", text, re.IGNORECASE):
            return brand
    return None


def _meta_description(soup: BeautifulSoup) -> Optional[str]:
    for attrs in ({"name": re.compile(r"^description$", re.I)}, {"property": "og:description"}):
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            return str(tag["content"]).strip()[:300]
    return None


def extract_property_info(html: str) -> PropertyInfo:
    soup, text = _parse(html)
    outcome = first_success(STAR_RATING_STRATEGIES, text)
    lowered = text.lower()
    return PropertyInfo(
        star_rating=outcome.value if outcome else None,
        room_count=_room_count(text),
        chain_brand=_chain_brand(text),
        description=_meta_description(soup),
        amenities=[a for a in AMENITY_KEYWORDS if re.search(rf"\b{a}\b", lowered)],
    )


# ---------------------------------------------------------------------------
# Team members
# ---------------------------------------------------------------------------

TITLE_KEYWORDS = [
    "General Manager", "Hotel Manager", "Managing Director", "Director of [A-Z][a-z]+",
    "Head of [A-Z][a-z]+", "Operations Manager", "Front Office Manager", "Revenue Manager",
    "F&B Manager", "Sales Director", "Marketing Director", "Chief [A-Z][a-z]+ Officer",
    "Owner", "Founder", "President", "CEO", "COO", "CFO", "GM", "Executive", "Manager",
]
_TITLE_ALT = "|".join(TITLE_KEYWORDS)
_NAME = r"[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+){1,3}"
_SEP = r"(?:[ \t]*[,–—|:\-][ \t]*|[ \t]*\n\s*)"

NAME_THEN_TITLE = re.compile(rf"({_NAME}){_SEP}({_TITLE_ALT})\b")
TITLE_THEN_NAME = re.compile(rf"\b({_TITLE_ALT}){_SEP}({_NAME})")
TAG_ADJACENT = re.compile(rf"<[^>]*>\s*({_NAME})\s*</[^>]*>\s*<[^>]*>\s*({_TITLE_ALT})\b")

_VENUE_WORDS = re.compile(r"\b(?:hotel|resort|spa|restaurant)\b", re.IGNORECASE)


def _json_ld_members(soup: BeautifulSoup) -> list[TeamMember]:
    members: list[TeamMember] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except (json.JSONDecodeError, TypeError):
            continue

        nodes = data if isinstance(data, list) else [data]
        expanded: list = []
        for node in nodes:
            if isinstance(node, dict):
                expanded.append(node)
                graph = node.get("@graph")
                if isinstance(graph, list):
                    expanded.extend(n for n in graph if isinstance(n, dict))

        for node in expanded:
            for key in ("employee", "member", "founder"):
                people = node.get(key)
                if not people:
                    continue
                for person in people if isinstance(people, list) else [people]:
                    if not isinstance(person, dict) or not isinstance(person.get("name"), str):
                        continue
                    email = person.get("email")
                    if isinstance(email, str):
                        email = email.replace("mailto:", "").strip().lower() or None
                    else:
                        email = None
                    members.append(TeamMember(
                        name=person["name"].strip(),
                        title=str(person.get("jobTitle") or person.get("roleName") or "Team Member"),
                        email=email,
                    ))
    return members


def _pattern_members(html: str, text: str) -> list[TeamMember]:
    members: list[TeamMember] = []

    def add(name: str, title: str) -> None:
        name = " ".join(name.split())
        if 3 < len(name) < 50 and not _VENUE_WORDS.search(name):
            members.append(TeamMember(name=name, title=title.strip()))

    for match in NAME_THEN_TITLE.finditer(text):
        add(match.group(1), match.group(2))
    for match in TITLE_THEN_NAME.finditer(text):
        add(match.group(2), match.group(1))
    for match in TAG_ADJACENT.finditer(html):
        add(match.group(1), match.group(2))
    return members


def dedupe_team_members(members: list[TeamMember]) -> list[TeamMember]:
    """One entry per lowercased name, preferring the one that carries an email."""
    seen: dict[str, TeamMember] = {}
    for member in members:
        key = member.name.lower()
        existing = seen.get(key)
        if existing is None or (member.email and not existing.email):
            seen[key] = member
    return list(seen.values())


def extract_team_members(html: str) -> list[TeamMember]:
    soup, text = _parse(html)
    members = _safely(lambda: _json_ld_members(soup), [], "json-ld")
    members += _safely(lambda: _pattern_members(html or "", text), [], "team patterns")
    return dedupe_team_members(members)


# ---------------------------------------------------------------------------
# Page parsing + public entry point
# ---------------------------------------------------------------------------

def _parse(html: str) -> tuple[BeautifulSoup, str]:
    """Parse once into a soup plus newline-separated visible text."""
    soup = BeautifulSoup(html or "", "lxml")
    text_soup = BeautifulSoup(html or "", "lxml")
    for tag in text_soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    text = text_soup.get_text("\n", strip=True)
    return soup, text


def page_phones(html: str) -> list[str]:
    """Numbers from tel: links and visible text."""
    return _safely(lambda: _phones_from_page(html), [], "phones")


def _safely(fn: Callable[[], T], default: T, label: str) -> T:
    try:
        return fn()
    except Exception as e:
        logger.debug(f"[Extractor] {label} failed: {e}")
        return default


def _phones_from_page(html: str) -> list[str]:
    soup, text = _parse(html)
    tel_links = " ".join(
        str(a["href"])[4:] for a in soup.find_all("a", href=True) if str(a["href"]).lower().startswith("tel:")
    )
    return find_phones(f"{tel_links}\n{text}")


def extract(html: str) -> WebsiteExtract:
    """Extract everything this page offers. Never raises."""
    html = html if isinstance(html, str) else ""
    return WebsiteExtract(
        emails=_safely(lambda: find_emails(html), [], "emails"),
        phones=page_phones(html),
        social_links=_safely(lambda: find_social_links(html), SocialLinks(), "social links"),
        property_info=_safely(lambda: extract_property_info(html), PropertyInfo(), "property info"),
        team_members=_safely(lambda: extract_team_members(html), [], "team members"),
    )
