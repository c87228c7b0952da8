"""LLM-backed extraction of venue facts.

The completion reply is untrusted free text. ``parse_completion`` recovers a
JSON object through three explicit tiers, and ``PromptedEnrichmentClient``
turns anything unrecoverable into a minimal record built from known facts.
"""

from __future__ import annotations

import enum
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from venue_enrichment.errors import CompletionCallFailed, CompletionParseFailed
from venue_enrichment.models import RawLead

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_LIMIT = 3000
TRUNCATION_MARKER = "...(content truncated)"

SYSTEM_PROMPT = (
    "You are a business analyst specializing in catering industry lead enrichment. "
    "Extract key venue details, event capabilities, and contact information. "
    "Respond with a single JSON object containing venue details, contact info, and event capabilities."
)

RESPONSE_KEYS = (
    "venueName",
    "aiOverview",
    "eventManagerName",
    "eventManagerEmail",
    "eventManagerPhone",
    "commonEventTypes",
    "venueCapacity",
    "inHouseCatering",
    "cateringOptions",
    "amenities",
    "pricingInformation",
    "preferredCaterers",
    "website",
)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?([\s\S]*?)\n?\s*```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

PLACEHOLDER_VALUES = {
    "",
    "n/a",
    "na",
    "none",
    "null",
    "unknown",
    "not available",
    "not found",
    "not found in provided information",
    "not specified",
    "not provided",
}


class ParseTier(enum.Enum):
    PARSED_JSON = "parsed_json"
    FENCED_JSON = "fenced_json"
    RAW_OBJECT_MATCH = "raw_object_match"
    PARSE_FAILED = "parse_failed"


@dataclass(frozen=True)
class ParseResult:
    tier: ParseTier
    payload: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.tier is not ParseTier.PARSE_FAILED


def _load_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(candidate)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def parse_plain_json(text: str) -> Optional[Dict[str, Any]]:
    return _load_object((text or "").strip())


def parse_fenced_json(text: str) -> Optional[Dict[str, Any]]:
    match = _FENCE_RE.search(text or "")
    if not match:
        return None
    return _load_object(match.group(1).strip())


def parse_raw_object(text: str) -> Optional[Dict[str, Any]]:
    match = _OBJECT_RE.search(text or "")
    if not match:
        return None
    return _load_object(match.group(0))


def parse_completion(text: str) -> ParseResult:
    """Recover the JSON object from a completion reply.

    Tier 1 reads a fenced code block when one is present, otherwise the whole
    reply; tier 2 falls back to the widest ``{...}`` span in the raw text.
    """

    if _FENCE_RE.search(text or ""):
        payload = parse_fenced_json(text)
        if payload is not None:
            return ParseResult(ParseTier.FENCED_JSON, payload)
    else:
        payload = parse_plain_json(text)
        if payload is not None:
            return ParseResult(ParseTier.PARSED_JSON, payload)

    payload = parse_raw_object(text)
    if payload is not None:
        return ParseResult(ParseTier.RAW_OBJECT_MATCH, payload)
    return ParseResult(ParseTier.PARSE_FAILED)


def _pick(payload: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str):
            if value.strip().lower() in PLACEHOLDER_VALUES:
                continue
            return value.strip()
        if value is None:
            continue
        if isinstance(value, (list, tuple)) and not value:
            continue
        return value
    return None


@dataclass
class PromptedFacts:
    """Fields recovered from the completion reply; every field is optional.

    List-like fields keep whatever shape the model produced; reconciliation
    normalises them.
    """

    venue_name: Optional[str] = None
    overview: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    event_types: Any = None
    venue_capacity: Any = None
    in_house_catering: Any = None
    catering_options: Any = None
    amenities: Any = None
    pricing_information: Optional[str] = None
    preferred_caterers: Any = None
    parse_tier: ParseTier = ParseTier.PARSE_FAILED
    degraded: bool = False
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], tier: ParseTier) -> "PromptedFacts":
        pricing = _pick(payload, "pricingInformation", "pricing_information", "pricing_info", "pricing")
        return cls(
            venue_name=_as_text(_pick(payload, "venueName", "venue_name", "name")),
            overview=_as_text(_pick(payload, "aiOverview", "description", "overview")),
            contact_name=_as_text(_pick(payload, "eventManagerName", "contact_name", "contactName")),
            contact_email=_as_text(_pick(payload, "eventManagerEmail", "contact_email", "contactEmail", "email")),
            contact_phone=_as_text(_pick(payload, "eventManagerPhone", "contact_phone", "contactPhone", "phone")),
            website=_as_text(_pick(payload, "website", "website_url")),
            event_types=_pick(payload, "commonEventTypes", "event_types", "eventTypes"),
            venue_capacity=_pick(payload, "venueCapacity", "venue_capacity", "capacity"),
            in_house_catering=_pick(payload, "inHouseCatering", "in_house_catering"),
            catering_options=_pick(payload, "cateringOptions", "catering_options"),
            amenities=_pick(payload, "amenities"),
            pricing_information=_as_text(pricing),
            preferred_caterers=_pick(payload, "preferredCaterers", "preferred_caterers"),
            parse_tier=tier,
        )


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(item).strip() for item in value if str(item).strip())
    text = str(value).strip()
    return text or None


def fallback_overview(lead: RawLead) -> str:
    return f"{lead.name} is a {lead.type_label.lower()} located at {lead.full_address or 'an unknown location'}."


def fallback_facts(lead: RawLead, error: Optional[str] = None) -> PromptedFacts:
    """Minimal record used when the completion service or its reply is unusable."""

    return PromptedFacts(
        venue_name=lead.name,
        overview=fallback_overview(lead),
        contact_email=lead.contact_email or None,
        contact_phone=lead.contact_phone or None,
        website=lead.website or None,
        degraded=True,
        error=error,
    )


def truncate_content(content: str, limit: int = DEFAULT_CONTENT_LIMIT) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + TRUNCATION_MARKER


def build_prompt(lead: RawLead, page_content: Optional[str] = None, content_limit: int = DEFAULT_CONTENT_LIMIT) -> str:
    known_lines = [f"Name: {lead.name}"]
    if lead.business_type:
        known_lines.append(f"Type: {lead.business_type}")
    if lead.full_address:
        known_lines.append(f"Address: {lead.full_address}")
    if lead.website:
        known_lines.append(f"Website: {lead.website}")
    if lead.contact_name:
        known_lines.append(f"Contact name: {lead.contact_name}")
    if lead.contact_phone:
        known_lines.append(f"Phone: {lead.contact_phone}")
    if lead.contact_email:
        known_lines.append(f"Email: {lead.contact_email}")

    if page_content:
        content_block = "WEBSITE CONTENT (extract):\n" + truncate_content(page_content, content_limit)
    else:
        content_block = "No website content available. Work only with the business information above."

    keys = ", ".join(f'"{key}"' for key in RESPONSE_KEYS)
    return "\n".join(
        [
            "You are analyzing a venue business for a catering company.",
            "Extract key venue details and contact information from the material below.",
            "",
            "BUSINESS INFORMATION (already verified, do not override these values):",
            *known_lines,
            "",
            content_block,
            "",
            "Your most important task is finding the event manager's or event coordinator's contact details.",
            'Look for titles such as "Event Manager", "Event Coordinator", "Catering Manager" or "Sales Manager",',
            'and phrases like "For event inquiries, contact..." in contact sections, footers and staff listings.',
            "Prefer their direct email and phone over generic business contacts such as info@ addresses.",
            "",
            f"Respond with a single JSON object using exactly these keys: {keys}.",
            "commonEventTypes, amenities, cateringOptions and preferredCaterers must be JSON arrays of strings.",
            "venueCapacity must be a number or null; inHouseCatering must be true, false or null.",
            "Use null for anything you cannot find. Do not wrap the JSON in markdown or add any other text.",
        ]
    )


class PromptedEnrichmentClient:
    """Single-attempt LLM extraction that degrades to known facts instead of failing."""

    def __init__(self, completion: Any, content_limit: int = DEFAULT_CONTENT_LIMIT) -> None:
        self.completion = completion
        self.content_limit = content_limit

    def enrich(self, lead: RawLead, page_content: Optional[str] = None) -> PromptedFacts:
        prompt = build_prompt(lead, page_content, self.content_limit)
        try:
            reply = self.completion.complete(SYSTEM_PROMPT, prompt)
        except CompletionCallFailed as exc:
            logger.warning("Completion call failed for lead %s: %s", lead.id, exc)
            return fallback_facts(lead, error=str(exc))

        result = parse_completion(reply)
        if not result.ok:
            error = CompletionParseFailed(f"no JSON object in completion reply ({len(reply or '')} chars)")
            logger.warning("Completion parse failed for lead %s: %s", lead.id, error)
            return fallback_facts(lead, error=str(error))

        logger.debug("Parsed completion for lead %s via %s", lead.id, result.tier.value)
        return PromptedFacts.from_payload(result.payload, result.tier)
