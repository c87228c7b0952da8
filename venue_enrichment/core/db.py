"""Database helpers for loading leads and storing their enrichment."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2 import extras, pool

from venue_enrichment.core.config import get_settings
from venue_enrichment.errors import PersistenceFailed
from venue_enrichment.etl.transform import to_raw_lead
from venue_enrichment.models import EnrichmentRecord, RawLead

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.ThreadedConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.ThreadedConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        # Batch workers share the pool across threads.
        _connection_pool = pool.ThreadedConnectionPool(
            minconn,
            max(maxconn, settings.enrich_max_workers),
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


_SELECT_LEADS = """
SELECT
    id::text AS id,
    name,
    address,
    city,
    state,
    website_url,
    contact_name,
    contact_email,
    contact_phone,
    type
FROM leads
WHERE id::text = ANY(%(ids)s);
"""

_UPDATE_ENRICHMENT = """
UPDATE leads SET
    enrichment_data = %(enrichment_data)s,
    status = 'enriched',
    lead_score = %(lead_score)s,
    lead_score_label = %(lead_score_label)s,
    updated_at = NOW()
WHERE id::text = %(lead_id)s;
"""


def fetch_leads(lead_ids: Sequence[str]) -> List[RawLead]:
    """Load leads by id, in the order requested; unknown ids are logged and dropped."""

    ids = [str(lead_id) for lead_id in lead_ids]
    if not ids:
        return []

    with get_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute(_SELECT_LEADS, {"ids": ids})
            rows = cur.fetchall()

    by_id: Dict[str, RawLead] = {}
    for row in rows:
        try:
            lead = to_raw_lead(dict(row))
        except ValueError as exc:
            logger.warning("Skipping unusable lead row %s: %s", row.get("id"), exc)
            continue
        by_id[lead.id] = lead

    missing = [lead_id for lead_id in ids if lead_id not in by_id]
    if missing:
        logger.warning("Leads not found: %s", ", ".join(missing))
    return [by_id[lead_id] for lead_id in ids if lead_id in by_id]


def _prepare_params(lead_id: str, record: EnrichmentRecord) -> Dict[str, Any]:
    score = record.lead_score
    return {
        "lead_id": str(lead_id),
        "enrichment_data": extras.Json(record.to_dict()),
        "lead_score": score.score if score else None,
        "lead_score_label": score.potential if score else None,
    }


def upsert_enrichment(lead_id: str, record: EnrichmentRecord) -> None:
    """Overwrite the stored enrichment for one lead; re-enrichment replaces it."""
    params = _prepare_params(lead_id, record)

    try:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_UPDATE_ENRICHMENT, params)
                updated = cur.rowcount
            conn.commit()
    except psycopg2.Error as exc:
        raise PersistenceFailed(f"database update failed: {exc}") from exc

    if not updated:
        raise PersistenceFailed(f"lead {lead_id} does not exist")
    logger.debug("Stored enrichment for lead %s", lead_id)
