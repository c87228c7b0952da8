"""Deterministic per-field merge of enrichment sources.

Precedence, highest first, applied to each field on its own:

1. known facts already on the lead (never overwritten)
2. the prompted (LLM) extraction
3. heuristic extraction from the page text
4. structured contact fields returned by the content-extraction service
5. synthesised defaults

Email and phone values from every source must pass a syntactic check before
they are considered; lists are always materialised as lists.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional

from venue_enrichment.core.urls import normalize
from venue_enrichment.enrichment.heuristics import (
    HeuristicFacts,
    detect_in_house_catering,
    extract_emails,
    extract_event_types,
    is_plausible_capacity,
)
from venue_enrichment.enrichment.prompting import PLACEHOLDER_VALUES, PromptedFacts
from venue_enrichment.errors import InvalidUrl
from venue_enrichment.models import EnrichmentRecord, ExtractedContent, RawLead, utc_now

logger = logging.getLogger(__name__)

OVERVIEW_MIN_LENGTH = 50
CONTENT_DESCRIPTION_MIN_LENGTH = 200
CONTENT_SCAN_LIMIT = 3000
WEBSITE_EXCERPT_LIMIT = 2000
DEFAULT_VENUE_NAME = "Unnamed Venue"

EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"^\+?[\d\s().\-]{7,25}$")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_INT_RE = re.compile(r"\d[\d,]*")

DESCRIPTION_KEYWORDS = (
    "venue",
    "event",
    "wedding",
    "host",
    "celebrate",
    "space",
    "location",
    "facility",
    "accommodate",
    "perfect",
    "elegant",
    "beautiful",
)
SENTENCE_KEYWORD_WEIGHTS = {
    "venue": 5,
    "wedding": 4,
    "event": 4,
    "corporate": 3,
    "ceremony": 3,
    "reception": 3,
    "celebrate": 3,
    "host": 3,
    "space": 2,
    "beautiful": 2,
    "elegant": 2,
    "perfect": 2,
    "charming": 2,
    "historic": 2,
    "modern": 2,
    "luxury": 2,
    "amenities": 2,
    "features": 1,
    "located": 1,
    "setting": 1,
    "offers": 1,
}


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and bool(EMAIL_PATTERN.match(value))


def is_valid_phone(value: Optional[str]) -> bool:
    if not value or not PHONE_PATTERN.match(value):
        return False
    digits = re.sub(r"\D", "", value)
    return 10 <= len(digits) <= 15


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = re.sub(r"\s+", " ", str(value)).strip()
    if text.lower() in PLACEHOLDER_VALUES:
        return None
    return text


def first_present(*candidates: Any) -> Optional[str]:
    for candidate in candidates:
        text = _clean_text(candidate)
        if text:
            return text
    return None


def first_valid_email(*candidates: Optional[str], lowercase: bool = True) -> Optional[str]:
    for candidate in candidates:
        text = _clean_text(candidate)
        if not text:
            continue
        if text.lower().startswith("mailto:"):
            text = text[7:]
        if is_valid_email(text):
            return text.lower() if lowercase else text
        logger.debug("Ignoring malformed email candidate %r", text)
    return None


def first_valid_phone(*candidates: Optional[str]) -> Optional[str]:
    for candidate in candidates:
        text = _clean_text(candidate)
        if text and is_valid_phone(text):
            return text
        if text:
            logger.debug("Ignoring malformed phone candidate %r", text)
    return None


def as_list(value: Any) -> List[str]:
    """Normalise a list-ish source value; comma-joined strings are split."""

    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]

    result: List[str] = []
    for item in items:
        text = _clean_text(item)
        if text and text not in result:
            result.append(text)
    return result


def first_non_empty_list(*candidates: Any) -> List[str]:
    for candidate in candidates:
        items = as_list(candidate)
        if items:
            return items
    return []


def as_capacity(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = int(value)
    else:
        match = _INT_RE.search(str(value))
        if not match:
            return None
        number = int(match.group(0).replace(",", ""))
    return number if is_plausible_capacity(number) else None


def as_tristate(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "y"}:
            return True
        if lowered in {"false", "no", "n"}:
            return False
    return None


def catering_from_options(options: Any) -> Optional[bool]:
    """Read the in-house flag from a catering-options list such as ``["In-house catering"]``."""

    items = as_list(options)
    if not items:
        return None
    return detect_in_house_catering(" ".join(items), ambiguous=None)


def first_defined(*candidates: Optional[bool]) -> Optional[bool]:
    """Unknown never clobbers a defined lower-precedence value."""

    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def canonical_website(*candidates: Optional[str]) -> Optional[str]:
    for candidate in candidates:
        text = _clean_text(candidate)
        if not text:
            continue
        try:
            return normalize(text)
        except InvalidUrl:
            logger.debug("Ignoring unusable website candidate %r", text)
    return None


def sentence_score(sentence: str) -> int:
    lowered = sentence.lower()
    score = sum(weight for keyword, weight in SENTENCE_KEYWORD_WEIGHTS.items() if keyword in lowered)
    if 40 < len(sentence) < 150:
        score += 2
    elif len(sentence) > 150:
        score -= 1
    return score


def select_description_sentences(content: str, limit: int = 2) -> List[str]:
    cleaned = re.sub(r"\s+", " ", content or "").strip()[:CONTENT_SCAN_LIMIT]
    sentences = [sentence.strip() for sentence in _SENTENCE_SPLIT.split(cleaned)]
    candidates = [
        sentence
        for sentence in sentences
        if 30 < len(sentence) < 200 and any(keyword in sentence.lower() for keyword in DESCRIPTION_KEYWORDS)
    ]
    # Stable sort keeps page order between equally relevant sentences.
    candidates.sort(key=sentence_score, reverse=True)
    selected = candidates[:limit]
    if not selected:
        first = next((sentence for sentence in sentences if len(sentence) > 30), None)
        if first:
            selected = [first]
    return selected


def describe_from_content(lead: RawLead, venue_name: str, address: Optional[str], content: str) -> Optional[str]:
    """Templated opener followed by the most venue-relevant page sentences."""

    if not content or len(content) < CONTENT_DESCRIPTION_MIN_LENGTH:
        return None

    type_label = lead.type_label.lower()
    type_desc = "venue" if type_label == "venue" else f"{type_label} venue"
    event_types = extract_event_types(content[:CONTENT_SCAN_LIMIT])
    event_desc = (
        f"specializing in {', '.join(event_types[:3])} events" if event_types else "offering event spaces"
    )
    parts = [f"{venue_name} is a {type_desc}"]
    if address:
        parts.append(f"located at {address}")
    parts.append(event_desc)
    opener = " ".join(parts) + "."

    sentences = select_description_sentences(content)
    if not sentences:
        return opener
    return f"{opener} {' '.join(sentence + '.' for sentence in sentences)}"


def synthesize_overview(record: EnrichmentRecord, lead: RawLead) -> str:
    overview = (
        f"{record.venue_name} is a {lead.type_label.lower()} located at {record.address or 'an unknown address'}"
    )
    if record.common_event_types:
        overview += f" that specializes in hosting {', '.join(record.common_event_types)} events"
    if record.in_house_catering is True:
        overview += ". In-house catering services are available to simplify event planning."
    elif record.in_house_catering is False:
        overview += ". Outside catering options are available."
    else:
        overview += "."
    if record.preferred_caterers:
        overview += f" Preferred caterers include: {', '.join(record.preferred_caterers)}."
    if record.amenities:
        overview += f" Amenities include {', '.join(record.amenities)}."
    if record.event_manager_phone:
        overview += f" For more information, can be reached at {record.event_manager_phone}."
    if record.website:
        overview += f" Visit their website at {record.website} for more details."
    return overview


def choose_overview(
    record: EnrichmentRecord,
    lead: RawLead,
    prompted: PromptedFacts,
    page_text: str,
) -> str:
    prompted_overview = _clean_text(prompted.overview)
    if prompted_overview and not prompted.degraded and len(prompted_overview) >= OVERVIEW_MIN_LENGTH:
        return prompted_overview
    # An unusable completion reply keeps the templated fallback sentence.
    if prompted.degraded and prompted_overview:
        return prompted_overview

    from_content = describe_from_content(lead, record.venue_name, record.address, page_text)
    if from_content:
        return from_content
    return synthesize_overview(record, lead)


def reconcile(
    lead: RawLead,
    heuristic: HeuristicFacts,
    prompted: PromptedFacts,
    structured: Optional[ExtractedContent] = None,
    *,
    page_text: str = "",
    source_url: Optional[str] = None,
) -> EnrichmentRecord:
    """Merge every source into one ``EnrichmentRecord`` by fixed precedence."""

    scraper_emails = extract_emails(" ".join(structured.emails)) if structured else []
    scraper_phones = list(structured.phones) if structured else []

    record = EnrichmentRecord(
        venue_name=first_present(lead.name, prompted.venue_name, structured.title if structured else None)
        or DEFAULT_VENUE_NAME,
        address=first_present(lead.full_address),
    )

    # Known emails are kept exactly as the lead owner wrote them.
    record.event_manager_email = first_valid_email(lead.contact_email, lowercase=False) or first_valid_email(
        prompted.contact_email, *heuristic.emails, *scraper_emails
    )
    record.event_manager_phone = first_valid_phone(
        lead.contact_phone, prompted.contact_phone, *heuristic.phones, *scraper_phones
    )
    record.event_manager_name = first_present(lead.contact_name, prompted.contact_name)

    record.website = canonical_website(lead.website, prompted.website, source_url)

    record.common_event_types = first_non_empty_list(prompted.event_types, heuristic.event_types)
    record.amenities = first_non_empty_list(prompted.amenities, heuristic.amenities)
    record.preferred_caterers = first_non_empty_list(prompted.preferred_caterers, heuristic.preferred_caterers)
    record.in_house_catering = first_defined(
        as_tristate(prompted.in_house_catering),
        catering_from_options(prompted.catering_options),
        heuristic.in_house_catering,
    )
    record.venue_capacity = as_capacity(prompted.venue_capacity) or heuristic.venue_capacity
    record.pricing_information = first_present(prompted.pricing_information, heuristic.pricing_information)

    record.ai_overview = choose_overview(record, lead, prompted, page_text)

    if structured is not None:
        record.website_content = structured.excerpt(WEBSITE_EXCERPT_LIMIT) or None

    record.last_updated = utc_now()
    return record
