"""Run the enrichment pipeline over many leads with bounded concurrency."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional

from venue_enrichment.core.callback import post_enrichment_result
from venue_enrichment.core.db import upsert_enrichment
from venue_enrichment.enrichment.pipeline import EnrichmentPipeline
from venue_enrichment.errors import NoWebsite, PersistenceFailed
from venue_enrichment.models import (
    STATUS_FAILED,
    STATUS_SKIPPED,
    STATUS_SUCCESS,
    BatchSummary,
    EnrichmentRecord,
    LeadOutcome,
    RawLead,
)

logger = logging.getLogger(__name__)

PersistFn = Callable[[str, EnrichmentRecord], None]
PERSIST_MODES = ("none", "db", "callback")


def persistence_for(mode: str) -> Optional[PersistFn]:
    """Map a ``--persist``/``persist`` option to the function that stores records."""

    if mode == "none":
        return None
    if mode == "db":
        return upsert_enrichment
    if mode == "callback":
        return post_enrichment_result
    raise ValueError(f"persist must be one of {', '.join(PERSIST_MODES)}")


class BatchCoordinator:
    """Fan leads out to a thread pool; one lead's failure never aborts the batch."""

    def __init__(
        self,
        pipeline: EnrichmentPipeline,
        persist: Optional[PersistFn] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.pipeline = pipeline
        self.persist = persist
        self.max_workers = max(1, max_workers or pipeline.settings.enrich_max_workers)

    def run(self, leads: Iterable[RawLead]) -> BatchSummary:
        leads = list(leads)
        if not leads:
            return BatchSummary()

        logger.info("Enriching %d leads with %d workers", len(leads), self.max_workers)
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(leads))) as executor:
            # map() yields results in submission order.
            outcomes: List[LeadOutcome] = list(executor.map(self._process, leads))

        summary = BatchSummary(outcomes=outcomes)
        logger.info(
            "Batch complete: processed=%d succeeded=%d failed=%d skipped=%d",
            summary.processed,
            summary.succeeded,
            summary.failed,
            summary.skipped,
        )
        return summary

    def _process(self, lead: RawLead) -> LeadOutcome:
        try:
            enrichment = self.pipeline.enrich(lead)
        except NoWebsite as exc:
            logger.info("Skipping lead %s: %s", lead.id, exc)
            return LeadOutcome(lead.id, STATUS_SKIPPED, record=self._known_only(lead))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Enrichment failed for lead %s", lead.id)
            return LeadOutcome(lead.id, STATUS_FAILED, record=self._known_only(lead), error=str(exc) or repr(exc))

        if self.persist is not None:
            try:
                self._persist(lead.id, enrichment.record)
            except PersistenceFailed as exc:
                logger.error("Persisting lead %s failed: %s", lead.id, exc)
                return LeadOutcome(
                    lead.id, STATUS_FAILED, record=enrichment.record, error=str(exc), partial=enrichment.partial
                )

        return LeadOutcome(lead.id, STATUS_SUCCESS, record=enrichment.record, partial=enrichment.partial)

    def _persist(self, lead_id: str, record: EnrichmentRecord) -> None:
        try:
            self.persist(lead_id, record)
        except PersistenceFailed:
            raise
        except Exception as exc:  # noqa: BLE001
            raise PersistenceFailed(f"persisting enrichment failed: {exc}") from exc

    def _known_only(self, lead: RawLead) -> Optional[EnrichmentRecord]:
        try:
            return self.pipeline.known_only_record(lead)
        except Exception:  # noqa: BLE001
            logger.exception("Could not build a known-facts record for lead %s", lead.id)
            return None
