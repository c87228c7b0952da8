"""Lead scoring for reconciled enrichment records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from venue_enrichment.models import EnrichmentRecord, LeadScore, utc_now

MAX_SCORE = 100
HIGH_THRESHOLD = 70
MEDIUM_THRESHOLD = 40
DETAILED_OVERVIEW_LENGTH = 100
SHORT_CATERER_LIST = 5

POTENTIAL_HIGH = "high"
POTENTIAL_MEDIUM = "medium"
POTENTIAL_LOW = "low"


@dataclass(frozen=True)
class ScoringRule:
    points: int
    applies: Callable[[EnrichmentRecord], bool]
    reason: Callable[[EnrichmentRecord], str]


def _fixed(text: str) -> Callable[[EnrichmentRecord], str]:
    return lambda record: text


def _has_email(record: EnrichmentRecord) -> bool:
    return bool(record.event_manager_email)


def _has_phone(record: EnrichmentRecord) -> bool:
    return bool(record.event_manager_phone)


def _has_name(record: EnrichmentRecord) -> bool:
    return bool(record.event_manager_name)


def _capacity_rule(points: int) -> ScoringRule:
    return ScoringRule(
        points,
        lambda record: record.venue_capacity is not None and record.venue_capacity > 50,
        lambda record: f"Venue capacity: {record.venue_capacity}",
    )


def _event_types_rule(points: int) -> ScoringRule:
    return ScoringRule(
        points,
        lambda record: bool(record.common_event_types),
        lambda record: f"Hosts events: {', '.join(record.common_event_types)}",
    )


PRICING_RULE = ScoringRule(5, lambda record: bool(record.pricing_information), _fixed("Pricing information available"))
NO_IN_HOUSE_RULE = ScoringRule(
    25,
    lambda record: record.in_house_catering is False,
    _fixed("No in-house catering (potential for partnership)"),
)
IN_HOUSE_RULE = ScoringRule(5, lambda record: record.in_house_catering is True, _fixed("Has in-house catering"))
WEBSITE_RULE = ScoringRule(5, lambda record: bool(record.website), _fixed("Has functional website"))
OVERVIEW_RULE = ScoringRule(
    5,
    lambda record: len(record.ai_overview or "") > DETAILED_OVERVIEW_LENGTH,
    _fixed("Has detailed venue description"),
)

# Reason order is part of the contract: contact, hosting capability, catering
# relationship, then website/data quality.
STANDARD_PROFILE: Tuple[ScoringRule, ...] = (
    ScoringRule(25, _has_email, _fixed("Has contact email")),
    ScoringRule(10, _has_phone, _fixed("Has contact phone")),
    ScoringRule(5, _has_name, _fixed("Has contact name")),
    _capacity_rule(15),
    _event_types_rule(10),
    PRICING_RULE,
    NO_IN_HOUSE_RULE,
    IN_HOUSE_RULE,
    WEBSITE_RULE,
    OVERVIEW_RULE,
)

# Alternate weighting that rewards a short preferred-caterer list and listed
# amenities. Raw totals can exceed 100 before clamping.
EXTENDED_PROFILE: Tuple[ScoringRule, ...] = (
    ScoringRule(15, _has_email, _fixed("Has contact email")),
    ScoringRule(10, _has_phone, _fixed("Has contact phone")),
    ScoringRule(10, _has_name, _fixed("Has contact name")),
    _capacity_rule(15),
    _event_types_rule(10),
    PRICING_RULE,
    NO_IN_HOUSE_RULE,
    IN_HOUSE_RULE,
    ScoringRule(
        15,
        lambda record: 0 < len(record.preferred_caterers) < SHORT_CATERER_LIST,
        _fixed("Has a short list of preferred caterers"),
    ),
    WEBSITE_RULE,
    OVERVIEW_RULE,
    ScoringRule(5, lambda record: bool(record.amenities), _fixed("Lists venue amenities")),
)

PROFILES = {
    "standard": STANDARD_PROFILE,
    "extended": EXTENDED_PROFILE,
}


def potential_for(score: int) -> str:
    if score >= HIGH_THRESHOLD:
        return POTENTIAL_HIGH
    if score >= MEDIUM_THRESHOLD:
        return POTENTIAL_MEDIUM
    return POTENTIAL_LOW


def score(record: EnrichmentRecord, profile: Optional[Tuple[ScoringRule, ...]] = None) -> LeadScore:
    """Score a full record from scratch; never updated incrementally."""

    rules = profile or STANDARD_PROFILE
    total = 0
    reasons: List[str] = []
    for rule in rules:
        if rule.applies(record):
            total += rule.points
            reasons.append(rule.reason(record))

    total = max(0, min(total, MAX_SCORE))
    return LeadScore(score=total, reasons=tuple(reasons), potential=potential_for(total), calculated_at=utc_now())


def profile_named(name: str) -> Tuple[ScoringRule, ...]:
    try:
        return PROFILES[name]
    except KeyError as exc:
        raise ValueError(f"unknown scoring profile {name!r}") from exc
