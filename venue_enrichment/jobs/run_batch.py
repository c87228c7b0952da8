"""CLI job to enrich a batch of leads and print the summary."""

import argparse
import json
import logging
import sys
from typing import List, Optional, Sequence

from venue_enrichment.core.config import get_settings
from venue_enrichment.core.db import fetch_leads
from venue_enrichment.enrichment.pipeline import build_pipeline
from venue_enrichment.etl.transform import to_raw_lead
from venue_enrichment.jobs.batch import PERSIST_MODES, BatchCoordinator, persistence_for
from venue_enrichment.models import BatchSummary, RawLead

logger = logging.getLogger(__name__)


def load_leads_file(path: str) -> List[RawLead]:
    """Read leads from a JSON file holding a list or ``{"leads": [...]}``."""

    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    rows = data.get("leads", []) if isinstance(data, dict) else data
    if not isinstance(rows, list):
        raise ValueError(f"{path} must contain a list of leads")

    leads: List[RawLead] = []
    for row in rows:
        try:
            leads.append(to_raw_lead(row))
        except (ValueError, AttributeError) as exc:
            logger.warning("Skipping unusable lead entry %r: %s", row, exc)
    return leads


def run_batch_job(
    *,
    input_path: Optional[str],
    lead_ids: Sequence[str],
    persist: str,
    max_workers: Optional[int],
) -> BatchSummary:
    leads: List[RawLead] = []
    if input_path:
        leads.extend(load_leads_file(input_path))
    if lead_ids:
        leads.extend(fetch_leads(lead_ids))
    if not leads:
        raise ValueError("No leads to enrich")

    logger.info("Loaded %d leads", len(leads))
    coordinator = BatchCoordinator(
        build_pipeline(get_settings()),
        persist=persistence_for(persist),
        max_workers=max_workers,
    )
    return coordinator.run(leads)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Enrich venue leads")
    parser.add_argument("--input", dest="input_path", help="JSON file with lead records")
    parser.add_argument(
        "--lead-id",
        dest="lead_ids",
        action="append",
        default=[],
        help="Lead id to load from the database (repeatable)",
    )
    parser.add_argument(
        "--persist",
        dest="persist",
        choices=PERSIST_MODES,
        default="none",
        help="Where to store enrichment results",
    )
    parser.add_argument("--workers", dest="max_workers", type=int, help="Concurrent leads in flight")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.input_path and not args.lead_ids:
        parser.error("one of --input or --lead-id is required")

    summary = run_batch_job(
        input_path=args.input_path,
        lead_ids=args.lead_ids,
        persist=args.persist,
        max_workers=args.max_workers,
    )
    json.dump(summary.to_dict(), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 1 if summary.failed else 0


if __name__ == "__main__":
    sys.exit(main())
