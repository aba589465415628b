"""
Name and email heuristics shared by the extractor, adapters, resolver and
scoring engine. All functions are pure.
"""
from __future__ import annotations

import re
import unicodedata

COMMON_FIRST_NAMES = {
    # English
    "james", "john", "robert", "michael", "william", "david", "richard", "joseph", "thomas", "charles",
    "christopher", "daniel", "matthew", "anthony", "mark", "donald", "steven", "paul", "andrew", "joshua",
    "mary", "patricia", "jennifer", "linda", "elizabeth", "barbara", "susan", "jessica", "sarah", "karen",
    "lisa", "nancy", "betty", "margaret", "sandra", "ashley", "kimberly", "emily", "donna", "michelle",
    "anna", "maria", "emma", "sophie", "julia", "laura", "peter", "george", "edward", "brian", "kevin",
    "oliver", "harry", "jack", "charlotte", "amelia", "olivia", "grace", "hannah", "rachel", "victoria",
    # French
    "jean", "pierre", "marie", "francois", "philippe", "michel", "isabelle", "catherine", "nicolas", "laurent",
    "antoine", "julien", "camille", "claire", "sylvie", "olivier", "mathieu",
    # German
    "hans", "klaus", "stefan", "andreas", "martin", "frank", "wolfgang", "juergen", "helmut",
    "markus", "tobias", "sabine", "petra", "katrin", "florian", "sebastian", "christian",
    # Italian
    "marco", "luca", "giovanni", "giuseppe", "alessandro", "andrea", "francesca", "giulia", "chiara", "valentina",
    "matteo", "paolo", "roberto",
    # Spanish / Portuguese
    "carlos", "jose", "juan", "miguel", "antonio", "francisco", "manuel", "pedro", "pablo", "luis",
    "javier", "sofia", "lucia", "joao", "ana",
    # Short forms
    "alex", "max", "ben", "sam", "tom", "chris", "nick", "mike", "dan", "joe", "tim", "matt", "rob", "steve",
}

# Hospitality, corporate, chain and location words that mark a string as not a person.
_NOT_PERSON_WORDS = [
    "hotel", "hotels", "resort", "resorts", "spa", "restaurant", "bar", "cafe", "group", "ltd", "inc",
    "company", "corporation", "gmbh", "sarl", "limited", "holdings", "management", "hospitality",
    "collection", "brand", "brands", "international", "global", "luxury", "boutique", "grand", "royal",
    "palace", "manor", "house", "inn", "lodge", "suites", "team", "contact", "reservations", "reception",
    "marriott", "hilton", "hyatt", "sheraton", "westin", "radisson", "kempinski", "fairmont", "accor",
    "sofitel", "novotel", "wyndham", "raffles", "jumeirah", "belmond", "rosewood",
    "amsterdam", "paris", "london", "berlin", "rome", "madrid", "barcelona", "copenhagen", "vienna",
    "munich", "milan", "lisbon", "dublin", "brussels", "stockholm", "oslo", "zurich", "geneva",
    "prague", "budapest", "warsaw", "athens", "helsinki", "dubai", "singapore", "tokyo", "hong kong",
    "sydney", "melbourne", "vancouver", "toronto", "new york", "los angeles", "miami", "chicago",
    "boston", "san francisco",
]
NOT_PERSON_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(w) for w in _NOT_PERSON_WORDS) + r")\b",
    re.IGNORECASE,
)

_NAME_WORD = re.compile(r"^[A-Z][a-z]+$")

_HONORIFICS = {"dr", "mr", "mrs", "ms", "prof", "sir", "herr", "frau", "mme", "m"}
_SUFFIXES = {"jr", "sr", "ii", "iii", "iv", "md", "phd", "esq", "mba"}

GENERIC_LOCAL_PARTS = {
    "info", "contact", "reservations", "reservation", "reception", "hello", "enquiries", "enquiry",
    "inquiries", "frontdesk", "booking", "bookings", "office", "mail", "welcome", "stay", "hotel",
}

FAKE_EMAIL_TOKENS = ("johndoe", "janedoe", "test", "example", "placeholder", "website.com")

WEBMAIL_DOMAINS = ("gmail", "yahoo", "hotmail", "outlook", "icloud", "aol", "gmx", "web.de")


def is_valid_person_name(name: str) -> bool:
    """True when `name` looks like a real person's name rather than page noise."""
    if not name or len(name) < 5 or len(name) > 40:
        return False

    words = name.split()
    if len(words) < 2 or len(words) > 4:
        return False

    if not all(_NAME_WORD.match(w) and 2 <= len(w) <= 15 for w in words):
        return False

    if NOT_PERSON_PATTERN.search(name):
        return False

    first = words[0].lower()
    looks_like_first = first in COMMON_FIRST_NAMES or 3 <= len(first) <= 10

    last = words[-1].lower()
    looks_like_last = 3 <= len(last) <= 15 and not NOT_PERSON_PATTERN.search(last)

    return looks_like_first and looks_like_last


def _ascii_lower(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return re.sub(r"[^a-z]", "", normalized.encode("ascii", "ignore").decode("ascii").lower())


def split_name(full_name: str) -> tuple[str, str]:
    """
    Extract a clean (first, last) pair, lowercased ASCII.
    Strips honorifics (Dr., Mr.) and suffixes (Jr., III). Returns ("", "") for
    empty input and (first, "") for single names.
    """
    parts = full_name.strip().split()
    while parts and parts[0].lower().rstrip(".,") in _HONORIFICS:
        parts.pop(0)
    while parts and parts[-1].lower().replace(".", "").rstrip(",") in _SUFFIXES:
        parts.pop()

    if not parts:
        return ("", "")
    if len(parts) < 2:
        return (_ascii_lower(parts[0]), "")
    return (_ascii_lower(parts[0]), _ascii_lower(parts[-1]))


def generate_email_permutations(full_name: str, domain: str) -> list[str]:
    """Common hospitality address formats for a person, most likely first."""
    first, last = split_name(full_name)
    if not first or not last or not domain:
        return []

    fi = first[0]
    return [
        f"{first}.{last}@{domain}",   # anna.weber
        f"{first}@{domain}",          # anna
        f"{fi}{last}@{domain}",       # aweber
        f"{first}{last}@{domain}",    # annaweber
        f"{last}.{first}@{domain}",   # weber.anna
        f"{fi}.{last}@{domain}",      # a.weber
    ]


def email_local_part(email: str) -> str:
    return email.split("@", 1)[0].lower()


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower() if "@" in email else ""


def is_generic_email(email: str) -> bool:
    """Role addresses (info@, reservations@ ...) that reach a desk, not a person."""
    return bool(email) and email_local_part(email) in GENERIC_LOCAL_PARTS


def is_fake_email(email: str) -> bool:
    lowered = (email or "").lower()
    return any(token in lowered for token in FAKE_EMAIL_TOKENS)


def is_webmail(email: str) -> bool:
    domain = email_domain(email)
    return any(w in domain for w in WEBMAIL_DOMAINS)
