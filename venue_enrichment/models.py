"""Core data models shared by the enrichment pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RawLead:
    """A saved business record as handed to the pipeline by its owner."""

    id: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    website: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    business_type: Optional[str] = None

    @property
    def full_address(self) -> Optional[str]:
        parts: List[str] = []
        for part in (self.address, self.city, self.state):
            value = (part or "").strip()
            if not value:
                continue
            # Street addresses often already carry the city or state.
            segments = {segment.strip().lower() for existing in parts for segment in existing.split(",")}
            if value.lower() in segments:
                continue
            parts.append(value)
        return ", ".join(parts) or None

    @property
    def type_label(self) -> str:
        return (self.business_type or "venue").strip() or "venue"


@dataclass(slots=True)
class ExtractedContent:
    """Best-effort page content returned by a content-extraction service."""

    url: str
    text: str = ""
    markdown: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)

    def best_text(self) -> str:
        return self.text or self.markdown or ""

    def excerpt(self, limit: int = 2000) -> str:
        body = self.best_text()
        if len(body) <= limit:
            return body
        return body[:limit] + "... [Content truncated]"


@dataclass(slots=True)
class ExtractionResponse:
    success: bool
    content: Optional[ExtractedContent] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class LeadScore:
    score: int
    reasons: Tuple[str, ...]
    potential: str
    calculated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "reasons": list(self.reasons),
            "potential": self.potential,
            "lastCalculated": self.calculated_at.isoformat(),
        }


@dataclass
class EnrichmentRecord:
    """Reconciled venue facts for one lead, the unit the pipeline produces."""

    venue_name: str
    ai_overview: str = ""
    event_manager_name: Optional[str] = None
    event_manager_email: Optional[str] = None
    event_manager_phone: Optional[str] = None
    common_event_types: List[str] = field(default_factory=list)
    in_house_catering: Optional[bool] = None
    venue_capacity: Optional[int] = None
    amenities: List[str] = field(default_factory=list)
    pricing_information: Optional[str] = None
    preferred_caterers: List[str] = field(default_factory=list)
    website: Optional[str] = None
    address: Optional[str] = None
    website_content: Optional[str] = None
    lead_score: Optional[LeadScore] = None
    last_updated: datetime = field(default_factory=utc_now)

    def structured_view(self) -> Dict[str, Any]:
        """Scraper-shaped view of the reconciled fields for downstream consumers."""

        return {
            "venueName": self.venue_name,
            "physicalAddress": self.address or "",
            "eventTypes": list(self.common_event_types),
            "inHouseCatering": self.in_house_catering,
            "venueCapacity": self.venue_capacity,
            "amenities": list(self.amenities),
            "preferredCaterers": list(self.preferred_caterers),
            "contactInformation": {
                "email": self.event_manager_email or "",
                "phone": self.event_manager_phone or "",
                "contactPersonName": self.event_manager_name or "",
            },
            "managementContact": {
                "managementContactName": self.event_manager_name or "",
                "managementContactEmail": self.event_manager_email or "",
                "managementContactPhone": self.event_manager_phone or "",
            },
            "pricingInformation": self.pricing_information or "",
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "venueName": self.venue_name,
            "aiOverview": self.ai_overview,
            "eventManagerName": self.event_manager_name,
            "eventManagerEmail": self.event_manager_email,
            "eventManagerPhone": self.event_manager_phone,
            "commonEventTypes": list(self.common_event_types),
            "inHouseCatering": self.in_house_catering,
            "venueCapacity": self.venue_capacity,
            "amenities": list(self.amenities),
            "pricingInformation": self.pricing_information,
            "preferredCaterers": list(self.preferred_caterers),
            "website": self.website,
            "address": self.address,
            "websiteContent": self.website_content,
            "leadScore": self.lead_score.to_dict() if self.lead_score else None,
            "lastUpdated": self.last_updated.isoformat(),
            "structuredData": self.structured_view(),
        }


@dataclass(slots=True)
class LeadOutcome:
    lead_id: str
    status: str
    record: Optional[EnrichmentRecord] = None
    error: Optional[str] = None
    partial: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.lead_id,
            "status": self.status,
            "partial": self.partial,
            "error": self.error,
            "enrichmentData": self.record.to_dict() if self.record else None,
        }


@dataclass
class BatchSummary:
    outcomes: List[LeadOutcome] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return self._count(STATUS_SUCCESS)

    @property
    def failed(self) -> int:
        return self._count(STATUS_FAILED)

    @property
    def skipped(self) -> int:
        return self._count(STATUS_SKIPPED)

    @property
    def errors(self) -> List[str]:
        return [
            f"lead {outcome.lead_id}: {outcome.error}"
            for outcome in self.outcomes
            if outcome.status == STATUS_FAILED
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": self.errors,
            "results": [outcome.to_dict() for outcome in self.outcomes],
        }
