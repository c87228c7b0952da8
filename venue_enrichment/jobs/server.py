"""HTTP entrypoint that runs lead enrichment (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Any, Dict, List

from flask import Flask, jsonify, request

from venue_enrichment.core.cache import TTLCache
from venue_enrichment.core.config import get_settings
from venue_enrichment.core.db import fetch_leads
from venue_enrichment.enrichment.pipeline import EnrichmentPipeline, build_pipeline
from venue_enrichment.errors import InvalidUrl
from venue_enrichment.etl.transform import to_raw_lead
from venue_enrichment.jobs.batch import PERSIST_MODES, BatchCoordinator, persistence_for
from venue_enrichment.jobs.url_jobs import UrlJobRunner, UrlJobStore
from venue_enrichment.models import STATUS_FAILED, STATUS_SKIPPED, RawLead

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)


@lru_cache(maxsize=1)
def get_pipeline() -> EnrichmentPipeline:
    return build_pipeline(get_settings())


@lru_cache(maxsize=1)
def get_url_jobs() -> UrlJobRunner:
    settings = get_settings()
    return UrlJobRunner(
        get_pipeline(),
        UrlJobStore(TTLCache(settings.url_job_ttl)),
        ThreadPoolExecutor(max_workers=settings.enrich_max_workers),
    )


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, no DB connection."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "extractor": settings.resolved_extractor_backend,
                "completion_configured": bool(settings.openai_api_key),
                "scoring_profile": settings.scoring_profile,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/enrich")
def enrich_lead() -> Any:
    """
    Enrich one lead synchronously.
    Required JSON fields: id, name, website (or website_url)
    Optional: persist ("none" | "db" | "callback")
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "request body must be a JSON object"}), 400

    try:
        lead = to_raw_lead(payload)
        persist = persistence_for(str(payload.get("persist", "none")))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    coordinator = BatchCoordinator(get_pipeline(), persist=persist, max_workers=1)
    outcome = coordinator.run([lead]).outcomes[0]
    if outcome.status == STATUS_SKIPPED:
        return jsonify({"error": f"lead {lead.id} has no usable website"}), 400
    if outcome.status == STATUS_FAILED:
        return jsonify({"error": outcome.error, "data": outcome.to_dict()}), 500

    return jsonify({"data": outcome.to_dict()}), 200


@app.post("/enrich/batch")
def enrich_batch() -> Any:
    """
    Enrich many leads and return the batch summary.
    JSON body: {"leads": [...]} or {"leadIds": [...]} (loaded from the database)
    Optional: persist, max_workers
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "request body must be a JSON object"}), 400
    persist_mode = str(payload.get("persist", "none"))
    if persist_mode not in PERSIST_MODES:
        return jsonify({"error": f"persist must be one of {', '.join(PERSIST_MODES)}"}), 400

    max_workers_raw = payload.get("max_workers")
    max_workers = None
    if max_workers_raw is not None:
        try:
            max_workers = int(max_workers_raw)
            if max_workers <= 0:
                return jsonify({"error": "max_workers must be positive"}), 400
        except (TypeError, ValueError):
            return jsonify({"error": "max_workers must be numeric"}), 400

    try:
        leads = _leads_from_payload(payload)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    if not leads:
        return jsonify({"error": "no leads supplied"}), 400

    coordinator = BatchCoordinator(get_pipeline(), persist=persistence_for(persist_mode), max_workers=max_workers)
    summary = coordinator.run(leads)
    return jsonify({"data": summary.to_dict()}), 200


@app.post("/enrich/url")
def enqueue_url_enrichment() -> Any:
    """
    Queue enrichment of one website and return its job id at once.
    Required JSON fields: url
    Optional: name
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "request body must be a JSON object"}), 400
    url = str(payload.get("url") or "").strip()
    if not url:
        return jsonify({"error": "url is required"}), 400

    name = payload.get("name")
    try:
        job = get_url_jobs().submit(url, name=str(name) if name is not None else None)
    except InvalidUrl as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify({"data": {"jobId": job.job_id, "status": job.status}}), 202


@app.get("/enrich/status/<job_id>")
def url_enrichment_status(job_id: str) -> Any:
    status = get_url_jobs().status(job_id)
    if status is None:
        return jsonify({"error": "job not found"}), 404
    return jsonify({"data": status}), 200


# ---------- Internals ----------


def _leads_from_payload(payload: Dict[str, Any]) -> List[RawLead]:
    if payload.get("leads"):
        rows = payload["leads"]
        if not isinstance(rows, list):
            raise ValueError("leads must be a list")
        if not all(isinstance(row, dict) for row in rows):
            raise ValueError("each lead must be an object")
        return [to_raw_lead(row) for row in rows]
    lead_ids = payload.get("leadIds") or payload.get("lead_ids")
    if lead_ids:
        if not isinstance(lead_ids, list):
            raise ValueError("leadIds must be a list")
        return fetch_leads(lead_ids)
    return []


def main() -> None:
    """Cloud Run injects PORT; fall back to WORKER_PORT locally."""
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)

    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
