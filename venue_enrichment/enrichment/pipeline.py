"""Single-lead enrichment: extract, prompt, reconcile, score."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from venue_enrichment.core.cache import TTLCache
from venue_enrichment.core.config import Settings, get_settings
from venue_enrichment.core.content import DEFAULT_FORMATS, build_extractor
from venue_enrichment.core.urls import variants
from venue_enrichment.enrichment import scoring
from venue_enrichment.enrichment.heuristics import CATERING_UNKNOWN, HeuristicFacts, extract_facts
from venue_enrichment.enrichment.prompting import PromptedEnrichmentClient, fallback_facts
from venue_enrichment.enrichment.reconcile import reconcile
from venue_enrichment.errors import ExtractionFailed, InvalidUrl, NoWebsite
from venue_enrichment.models import EnrichmentRecord, ExtractedContent, RawLead
from venue_enrichment.vendors.openai_chat import OpenAIChatCompletion

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 100

STAGE_EXTRACTING = "extracting"
STAGE_PROCESSING = "processing"
STAGE_GENERATING = "generating"

StageHook = Callable[[str], None]


@dataclass
class LeadEnrichment:
    record: EnrichmentRecord
    partial: bool = False
    errors: List[str] = field(default_factory=list)


class EnrichmentPipeline:
    """Run the four enrichment stages for one lead in a fixed order."""

    def __init__(
        self,
        extractor: Any,
        prompted_client: PromptedEnrichmentClient,
        settings: Optional[Settings] = None,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.extractor = extractor
        self.prompted_client = prompted_client
        self.cache = cache
        self.profile = scoring.profile_named(self.settings.scoring_profile)
        self.ambiguous_catering = False if self.settings.catering_ambiguity_default == "false" else CATERING_UNKNOWN

    @staticmethod
    def candidate_urls(lead: RawLead) -> List[str]:
        if not (lead.website or "").strip():
            raise NoWebsite(f"lead {lead.id} has no website")
        try:
            return variants(lead.website)
        except InvalidUrl as exc:
            raise NoWebsite(f"lead {lead.id} has an unusable website: {exc}") from exc

    def fetch_content(self, lead: RawLead) -> Tuple[Optional[ExtractedContent], Optional[str]]:
        """Try each URL variant until one yields enough content.

        Returns the content (or ``None``) and the reason extraction failed.
        """

        errors: List[str] = []
        for url in self.candidate_urls(lead):
            if self.cache is not None:
                cached = self.cache.get(url)
                if cached is not None:
                    logger.debug("Content cache hit for %s", url)
                    return cached, None

            logger.info("Extracting content for lead %s from %s", lead.id, url)
            try:
                response = self.extractor.extract(
                    [url],
                    formats=DEFAULT_FORMATS,
                    timeout=self.settings.extraction_timeout,
                    wait_time=self.settings.extraction_wait_ms,
                )
            except Exception as exc:  # noqa: BLE001
                failure = ExtractionFailed(f"{url}: {exc or exc.__class__.__name__}")
                logger.warning("Extractor raised for lead %s: %s", lead.id, failure)
                errors.append(str(failure))
                continue
            if not response.success or response.content is None:
                errors.append(f"{url}: {response.error or 'extraction failed'}")
                continue

            length = len(response.content.best_text())
            if length <= MIN_CONTENT_LENGTH:
                errors.append(f"{url}: only {length} characters of content")
                continue

            if self.cache is not None:
                self.cache.set(url, response.content)
            return response.content, None

        failure = ExtractionFailed("; ".join(errors) or "no URL variants to try")
        logger.warning("Content extraction failed for lead %s: %s", lead.id, failure)
        return None, str(failure)

    def enrich(self, lead: RawLead, on_stage: Optional[StageHook] = None) -> LeadEnrichment:
        """Run the stages in order; ``on_stage`` is told when each one starts."""

        notify = on_stage or (lambda stage: None)

        notify(STAGE_EXTRACTING)
        content, extraction_error = self.fetch_content(lead)
        errors: List[str] = []
        if extraction_error:
            errors.append(extraction_error)

        notify(STAGE_PROCESSING)
        page_text = content.best_text() if content else ""
        heuristic = extract_facts(page_text, ambiguous_catering=self.ambiguous_catering)
        prompted = self.prompted_client.enrich(lead, page_text or None)
        if prompted.degraded and prompted.error:
            errors.append(prompted.error)

        notify(STAGE_GENERATING)
        record = reconcile(
            lead,
            heuristic,
            prompted,
            content,
            page_text=page_text,
            source_url=content.url if content else None,
        )
        record.lead_score = scoring.score(record, self.profile)

        partial = content is None or prompted.degraded
        logger.info(
            "Enriched lead %s: score=%s potential=%s partial=%s",
            lead.id,
            record.lead_score.score,
            record.lead_score.potential,
            partial,
        )
        return LeadEnrichment(record=record, partial=partial, errors=errors)

    def known_only_record(self, lead: RawLead) -> EnrichmentRecord:
        """Record carrying only what the lead already knew about itself."""

        record = reconcile(lead, HeuristicFacts(), fallback_facts(lead))
        record.lead_score = scoring.score(record, self.profile)
        return record


def build_pipeline(settings: Optional[Settings] = None) -> EnrichmentPipeline:
    settings = settings or get_settings()
    completion = OpenAIChatCompletion(settings=settings)
    if not completion.enabled:
        logger.warning("Completion service disabled; every lead will use the fallback overview.")
    cache = TTLCache(settings.content_cache_ttl) if settings.content_cache_ttl > 0 else None
    return EnrichmentPipeline(
        extractor=build_extractor(settings),
        prompted_client=PromptedEnrichmentClient(completion, content_limit=settings.prompt_content_limit),
        settings=settings,
        cache=cache,
    )
