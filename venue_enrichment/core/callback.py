"""POST enrichment results back to the owning API."""

import logging
from typing import Optional

import requests

from venue_enrichment.core.config import Settings, get_settings
from venue_enrichment.core.content import REQUEST_TIMEOUT, USER_AGENT
from venue_enrichment.errors import PersistenceFailed
from venue_enrichment.models import EnrichmentRecord

logger = logging.getLogger(__name__)


def post_enrichment_result(lead_id: str, record: EnrichmentRecord, settings: Optional[Settings] = None) -> None:
    """Deliver one record to ``ENRICH_CALLBACK_URL``/enrich-result."""

    settings = settings or get_settings()
    if not settings.enrich_callback_url:
        raise PersistenceFailed("ENRICH_CALLBACK_URL is not configured")

    score = record.lead_score
    payload = {
        "lead_id": lead_id,
        "status": "enriched",
        "lead_score": score.score if score else None,
        "lead_score_label": score.potential if score else None,
        "enrichment_data": record.to_dict(),
    }

    try:
        response = requests.post(
            settings.enrich_callback_url.rstrip("/") + "/enrich-result",
            json=payload,
            timeout=REQUEST_TIMEOUT,
            headers={"User-Agent": USER_AGENT},
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.error("Failed to POST enrichment result for %s: %s", lead_id, exc)
        raise PersistenceFailed(f"callback failed: {exc}") from exc
