"""Utilities for turning lead rows and API payloads into ``RawLead`` objects."""

import logging
from typing import Any, Dict, Optional

from venue_enrichment.models import RawLead

logger = logging.getLogger(__name__)

_NAME_KEYS = ("name", "company", "venue_name", "venueName")
_WEBSITE_KEYS = ("website_url", "company_website", "website", "websiteUrl")
_PHONE_KEYS = ("contact_phone", "phone", "contactPhone")
_EMAIL_KEYS = ("contact_email", "email", "contactEmail")
_CONTACT_NAME_KEYS = ("contact_name", "contactName")
_TYPE_KEYS = ("type", "category", "business_type", "type_business")


def _first(row: Dict[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = row.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def to_raw_lead(row: Dict[str, Any]) -> RawLead:
    """Map a persisted lead row (or request payload) to a ``RawLead``.

    Raises ``ValueError`` when the row has no id or no name.
    """

    lead_id = _first(row, ("id", "lead_id", "leadId"))
    name = _first(row, _NAME_KEYS)
    if not lead_id or not name:
        raise ValueError("lead rows need an id and a name")

    return RawLead(
        id=lead_id,
        name=name,
        address=_first(row, ("address", "full_address", "formatted_address")),
        city=_first(row, ("city",)),
        state=_first(row, ("state", "region")),
        website=_first(row, _WEBSITE_KEYS),
        contact_name=_first(row, _CONTACT_NAME_KEYS),
        contact_email=_first(row, _EMAIL_KEYS),
        contact_phone=_first(row, _PHONE_KEYS),
        business_type=_first(row, _TYPE_KEYS),
    )
