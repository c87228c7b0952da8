"""Background enrichment of a single website URL with pollable job status."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
import uuid
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from venue_enrichment.core.cache import TTLCache
from venue_enrichment.core.urls import domain_of, normalize
from venue_enrichment.enrichment.pipeline import (
    STAGE_EXTRACTING,
    STAGE_GENERATING,
    STAGE_PROCESSING,
    EnrichmentPipeline,
)
from venue_enrichment.models import RawLead

logger = logging.getLogger(__name__)

JOB_VALIDATING = "validating"
JOB_COMPLETE = "complete"
JOB_ERROR = "error"

JOB_PROGRESS = {
    JOB_VALIDATING: 5,
    STAGE_EXTRACTING: 20,
    STAGE_PROCESSING: 50,
    STAGE_GENERATING: 80,
    JOB_COMPLETE: 100,
    JOB_ERROR: 0,
}


@dataclass
class UrlJob:
    job_id: str
    url: str
    started_at: float
    status: str = JOB_VALIDATING
    result: Optional[Dict[str, Any]] = None
    partial: bool = False
    error: Optional[str] = None

    def to_dict(self, now: float) -> Dict[str, Any]:
        progress = JOB_PROGRESS.get(self.status, 0)
        elapsed = max(0, int(now - self.started_at))
        payload: Dict[str, Any] = {
            "jobId": self.job_id,
            "url": self.url,
            "status": self.status,
            "progress": progress,
            "elapsed": elapsed,
        }
        if self.status == JOB_COMPLETE:
            payload["partial"] = self.partial
            payload["result"] = self.result
        elif self.status == JOB_ERROR:
            payload["error"] = self.error or "An error occurred during processing"
        else:
            # Linear estimate from the progress reached so far.
            remaining = None
            if progress and elapsed:
                remaining = max(1, int(elapsed * 100 / progress) - elapsed)
            payload["estimatedRemaining"] = remaining
        return payload


class UrlJobStore:
    """Job records held in a ``TTLCache`` so finished jobs age out on their own."""

    def __init__(self, cache: TTLCache, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._cache = cache
        self._clock = clock
        self._lock = threading.Lock()

    def create(self, url: str) -> UrlJob:
        job = UrlJob(job_id=str(uuid.uuid4()), url=url, started_at=self._clock())
        with self._lock:
            self._cache.set(job.job_id, job)
        return dataclasses.replace(job)

    def get(self, job_id: str) -> Optional[UrlJob]:
        with self._lock:
            job = self._cache.get(job_id)
            return dataclasses.replace(job) if job is not None else None

    def update(self, job_id: str, **changes: Any) -> None:
        with self._lock:
            job = self._cache.get(job_id)
            if job is None:
                logger.warning("Job %s expired before it could be updated to %s", job_id, changes.get("status"))
                return
            self._cache.set(job_id, dataclasses.replace(job, **changes))

    def describe(self, job_id: str) -> Optional[Dict[str, Any]]:
        job = self.get(job_id)
        return job.to_dict(self._clock()) if job is not None else None


class UrlJobRunner:
    """Accept a URL, return a job id at once and enrich it on an executor."""

    def __init__(self, pipeline: EnrichmentPipeline, store: UrlJobStore, executor: Executor) -> None:
        self.pipeline = pipeline
        self.store = store
        self.executor = executor

    def submit(self, url: str, name: Optional[str] = None) -> UrlJob:
        """Queue enrichment of ``url``; raises ``InvalidUrl`` for unusable input."""

        website = normalize(url)
        job = self.store.create(website)
        lead = RawLead(id=job.job_id, name=(name or "").strip() or domain_of(website), website=website)
        logger.info("Queueing URL enrichment job %s for %s", job.job_id, website)
        self.executor.submit(self._run, job.job_id, lead)
        return job

    def status(self, job_id: str) -> Optional[Dict[str, Any]]:
        return self.store.describe(job_id)

    def _run(self, job_id: str, lead: RawLead) -> None:
        try:
            enrichment = self.pipeline.enrich(lead, on_stage=lambda stage: self.store.update(job_id, status=stage))
        except Exception as exc:  # noqa: BLE001
            logger.exception("URL enrichment job %s failed", job_id)
            self.store.update(job_id, status=JOB_ERROR, error=str(exc) or exc.__class__.__name__)
            return

        self.store.update(
            job_id,
            status=JOB_COMPLETE,
            result=enrichment.record.to_dict(),
            partial=enrichment.partial,
        )
        logger.info("URL enrichment job %s complete (partial=%s)", job_id, enrichment.partial)
