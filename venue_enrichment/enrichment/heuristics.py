"""Pattern-based extraction of venue facts from raw page text.

Every extractor here is independent and best effort: "no match" is a normal
result, and a failure inside one extractor never blocks the others.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Value returned for an ambiguous in-house catering signal; "false" is the
# legacy policy some callers still ask for.
CATERING_UNKNOWN: Optional[bool] = None

MIN_CAPACITY = 20
MAX_CAPACITY = 2000

EMAIL_REGEX = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)
PHONE_REGEX = re.compile(r"(?<![\d+])(?:\+1|1)?\s*\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}(?!\d)")
CAPACITY_REGEX = re.compile(
    r"(?:capacity|accommodate|up to|maximum)[^\d]{0,40}?(\d+)[^\d]{0,20}?(?:guest|people|person|attendee|seat)",
    re.IGNORECASE,
)
PREFERRED_CATERERS_REGEX = re.compile(
    r"(?:preferred|approved|recommended)\s+caterers?(?:\s+include)?(?:\s*:)?\s*([^.!?]*)",
    re.IGNORECASE,
)
AMENITIES_REGEX = re.compile(
    r"(?:amenities|features|facilities|services|included)(?:\s+include)?(?:\s*:)?\s*([^.!?]*)",
    re.IGNORECASE,
)
PRICING_REGEX = re.compile(
    r"\b(?:pricing|packages|rates|fees|cost)\b(?:\s+information)?(?:\s*:)?\s*([^.]{5,200})",
    re.IGNORECASE,
)
LIST_SPLIT_REGEX = re.compile(r",|;|\band\b", re.IGNORECASE)
AMENITY_SPLIT_REGEX = re.compile(r",|;|\band\b|\n", re.IGNORECASE)

PLACEHOLDER_EMAIL_DOMAINS = ("example.com", "yourdomain.com", "domain.com")
GENERIC_EMAIL_LOCAL_PARTS = {"no-reply", "noreply", "test", "username", "your", "user", "name", "email"}
EVENT_EMAIL_KEYWORDS = (
    "event",
    "events",
    "catering",
    "booking",
    "sales",
    "venue",
    "reservation",
    "book",
    "inquiry",
)
GENERIC_EMAIL_PREFIXES = ("info@", "contact@", "hello@")
IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")

# Title-cased label -> substrings that signal it.
EVENT_TYPE_VOCABULARY = (
    ("Wedding", ("wedding",)),
    ("Corporate", ("corporate",)),
    ("Meeting", ("meeting",)),
    ("Social", ("social",)),
    ("Party", ("party", "parties")),
    ("Conference", ("conference",)),
    ("Celebration", ("celebration",)),
    ("Ceremony", ("ceremony", "ceremonies")),
    ("Reception", ("reception",)),
    ("Seminar", ("seminar",)),
    ("Retreat", ("retreat",)),
    ("Gala", ("gala",)),
    ("Workshop", ("workshop",)),
)

IN_HOUSE_CATERING_PATTERNS = (
    "in-house catering",
    "in house catering",
    "our catering",
    "our own catering",
    "catering services provided",
    "on-site catering",
    "onsite catering",
    "our chef",
    "our culinary team",
    "exclusive caterer",
)
OUTSIDE_CATERING_PATTERNS = (
    "preferred caterer",
    "approved caterer",
    "recommended caterer",
    "outside catering",
    "outside caterer",
    "external caterer",
    "bring your own caterer",
    "select from our list of caterers",
    "catering not provided",
)


@dataclass
class HeuristicFacts:
    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)
    venue_capacity: Optional[int] = None
    event_types: List[str] = field(default_factory=list)
    in_house_catering: Optional[bool] = None
    preferred_caterers: List[str] = field(default_factory=list)
    amenities: List[str] = field(default_factory=list)
    pricing_information: Optional[str] = None

    @property
    def email(self) -> Optional[str]:
        return self.emails[0] if self.emails else None

    @property
    def phone(self) -> Optional[str]:
        return self.phones[0] if self.phones else None


def extract_emails(text: str) -> List[str]:
    """Return contact emails, event-related addresses only when any exist."""

    found: List[str] = []
    seen = set()
    for match in EMAIL_REGEX.finditer(text or ""):
        email = match.group(0).lower().strip(".")
        if email in seen or not _is_usable_email(email):
            continue
        seen.add(email)
        found.append(email)

    event_related = [email for email in found if _is_event_email(email)]
    if event_related:
        logger.debug("Found %d event-related emails: %s", len(event_related), ", ".join(event_related))
        return event_related

    return sorted(
        found,
        key=lambda email: (
            email.startswith(GENERIC_EMAIL_PREFIXES),
            len(email.split("@", 1)[1]),
            len(email),
        ),
    )


def _is_usable_email(email: str) -> bool:
    local, _, domain = email.partition("@")
    if not local or not domain:
        return False
    if domain.endswith(IMAGE_SUFFIXES):
        return False
    if any(domain == placeholder or domain.endswith(f".{placeholder}") for placeholder in PLACEHOLDER_EMAIL_DOMAINS):
        return False
    return local not in GENERIC_EMAIL_LOCAL_PARTS


def _is_event_email(email: str) -> bool:
    return any(keyword in email for keyword in EVENT_EMAIL_KEYWORDS)


def extract_phones(text: str) -> List[str]:
    """Return North-American style phone numbers exactly as written, de-duplicated."""

    phones: List[str] = []
    for match in PHONE_REGEX.finditer(text or ""):
        phone = match.group(0).strip()
        if phone not in phones:
            phones.append(phone)
    return phones


def is_plausible_capacity(value: int) -> bool:
    return MIN_CAPACITY < value < MAX_CAPACITY


def extract_capacity(text: str) -> Optional[int]:
    match = CAPACITY_REGEX.search(text or "")
    if not match:
        return None
    capacity = int(match.group(1))
    if not is_plausible_capacity(capacity):
        logger.debug("Discarding implausible capacity %d", capacity)
        return None
    return capacity


def extract_event_types(text: str) -> List[str]:
    lowered = (text or "").lower()
    return [
        label
        for label, needles in EVENT_TYPE_VOCABULARY
        if any(needle in lowered for needle in needles)
    ]


def has_outside_catering_signal(text: str) -> bool:
    lowered = (text or "").lower()
    return any(pattern in lowered for pattern in OUTSIDE_CATERING_PATTERNS)


def detect_in_house_catering(text: str, ambiguous: Optional[bool] = CATERING_UNKNOWN) -> Optional[bool]:
    """True for in-house only signals, False for outside only, ``ambiguous`` otherwise."""

    lowered = (text or "").lower()
    in_house = any(pattern in lowered for pattern in IN_HOUSE_CATERING_PATTERNS)
    outside = has_outside_catering_signal(lowered)
    if in_house and not outside:
        return True
    if outside and not in_house:
        return False
    return ambiguous


def extract_preferred_caterers(text: str) -> List[str]:
    if not has_outside_catering_signal(text):
        return []
    match = PREFERRED_CATERERS_REGEX.search(text or "")
    if not match:
        return []
    return _split_list(match.group(1), LIST_SPLIT_REGEX, lambda item: len(item) > 2)


def extract_amenities(text: str) -> List[str]:
    match = AMENITIES_REGEX.search(text or "")
    if not match:
        return []
    return _split_list(match.group(1), AMENITY_SPLIT_REGEX, lambda item: 2 < len(item) < 50)


def extract_pricing(text: str) -> Optional[str]:
    match = PRICING_REGEX.search(text or "")
    if not match:
        return None
    return match.group(1).strip() or None


def _split_list(raw: str, splitter: re.Pattern, keep: Callable[[str], bool]) -> List[str]:
    items: List[str] = []
    for fragment in splitter.split(raw or ""):
        item = fragment.strip(" \t\r\n:-")
        if keep(item) and item not in items:
            items.append(item)
    return items


def _attempt(name: str, extractor: Callable[[], T], default: T) -> T:
    try:
        return extractor()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Heuristic extractor %s failed: %s", name, exc)
        return default


def extract_facts(text: str, *, ambiguous_catering: Optional[bool] = CATERING_UNKNOWN) -> HeuristicFacts:
    """Run every heuristic extractor over ``text``."""

    # No page text is "nothing known", not an ambiguous catering signal.
    if not text:
        return HeuristicFacts()

    return HeuristicFacts(
        emails=_attempt("emails", lambda: extract_emails(text), []),
        phones=_attempt("phones", lambda: extract_phones(text), []),
        venue_capacity=_attempt("capacity", lambda: extract_capacity(text), None),
        event_types=_attempt("event_types", lambda: extract_event_types(text), []),
        in_house_catering=_attempt(
            "catering", lambda: detect_in_house_catering(text, ambiguous_catering), ambiguous_catering
        ),
        preferred_caterers=_attempt("preferred_caterers", lambda: extract_preferred_caterers(text), []),
        amenities=_attempt("amenities", lambda: extract_amenities(text), []),
        pricing_information=_attempt("pricing", lambda: extract_pricing(text), None),
    )
