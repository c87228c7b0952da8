import threading

import pytest
import requests

from venue_enrichment.core.config import Settings
from venue_enrichment.enrichment.pipeline import EnrichmentPipeline
from venue_enrichment.enrichment.prompting import PromptedEnrichmentClient
from venue_enrichment.errors import PersistenceFailed
from venue_enrichment.jobs import batch
from venue_enrichment.jobs.batch import BatchCoordinator, persistence_for
from venue_enrichment.models import ExtractedContent, ExtractionResponse, RawLead

PAGE = (
    "Harbor Loft is an elegant waterfront venue for weddings and corporate events. "
    "Email events@harborloft.com or call 555-234-9876 to plan your celebration."
)


class StaticExtractor:
    def extract(self, urls, *, formats, timeout, wait_time):
        return ExtractionResponse(success=True, content=ExtractedContent(url=urls[0], text=PAGE))


class FakeCompletion:
    def complete(self, system_prompt, user_prompt):
        return '{"aiOverview": null}'


def _pipeline(**settings):
    return EnrichmentPipeline(StaticExtractor(), PromptedEnrichmentClient(FakeCompletion()), Settings(**settings))


def test_scenario_b_lead_without_website_is_skipped():
    lead = RawLead(id="b", name="Harbor Loft", contact_email="owner@harborloft.com", contact_phone="(555) 222-3333")

    summary = BatchCoordinator(_pipeline()).run([lead])

    assert (summary.processed, summary.succeeded, summary.failed, summary.skipped) == (1, 0, 0, 1)
    assert summary.errors == []
    outcome = summary.outcomes[0]
    assert outcome.status == "skipped"
    assert outcome.error is None
    assert outcome.record.venue_name == "Harbor Loft"
    assert outcome.record.event_manager_email == "owner@harborloft.com"
    assert outcome.record.event_manager_phone == "(555) 222-3333"
    assert outcome.record.common_event_types == []


def test_mixed_batch_counts_and_order():
    leads = [
        RawLead(id="1", name="Harbor Loft", website="harborloft.com"),
        RawLead(id="2", name="No Site"),
        RawLead(id="3", name="Oakview Hall", website="oakviewhall.com"),
    ]

    summary = BatchCoordinator(_pipeline(), max_workers=2).run(leads)

    assert [outcome.lead_id for outcome in summary.outcomes] == ["1", "2", "3"]
    assert [outcome.status for outcome in summary.outcomes] == ["success", "skipped", "success"]
    assert summary.succeeded == 2
    assert summary.outcomes[0].record.event_manager_email == "events@harborloft.com"


def test_empty_batch():
    summary = BatchCoordinator(_pipeline()).run([])
    assert summary.to_dict()["processed"] == 0


def test_unexpected_error_fails_only_that_lead(monkeypatch, caplog):
    pipeline = _pipeline()
    original = pipeline.enrich

    def flaky(lead):
        if lead.id == "boom":
            raise RuntimeError("parser crashed")
        return original(lead)

    monkeypatch.setattr(pipeline, "enrich", flaky)
    leads = [
        RawLead(id="boom", name="Broken Barn", website="brokenbarn.com", contact_phone="(555) 777-8888"),
        RawLead(id="ok", name="Harbor Loft", website="harborloft.com"),
    ]

    with caplog.at_level("ERROR"):
        summary = BatchCoordinator(pipeline).run(leads)

    assert summary.failed == 1
    assert summary.succeeded == 1
    assert summary.errors == ["lead boom: parser crashed"]
    failed = summary.outcomes[0]
    assert failed.record is not None
    assert failed.record.event_manager_phone == "(555) 777-8888"
    assert "Enrichment failed for lead boom" in caplog.text


def test_persistence_failure_marks_lead_failed():
    stored = []

    def persist(lead_id, record):
        if lead_id == "2":
            raise ConnectionError("db down")
        stored.append((lead_id, record.venue_name))

    leads = [
        RawLead(id="1", name="Harbor Loft", website="harborloft.com"),
        RawLead(id="2", name="Oakview Hall", website="oakviewhall.com"),
    ]
    summary = BatchCoordinator(_pipeline(), persist=persist).run(leads)

    assert stored == [("1", "Harbor Loft")]
    assert summary.succeeded == 1
    assert summary.failed == 1
    assert summary.errors == ["lead 2: persisting enrichment failed: db down"]
    assert summary.outcomes[1].record.venue_name == "Oakview Hall"


def test_persistence_failed_passes_through_unchanged():
    def persist(lead_id, record):
        raise PersistenceFailed("callback failed: 500")

    summary = BatchCoordinator(_pipeline(), persist=persist).run([RawLead(id="1", name="A", website="a-venue.com")])
    assert summary.errors == ["lead 1: callback failed: 500"]


def test_skipped_leads_are_not_persisted():
    calls = []
    BatchCoordinator(_pipeline(), persist=lambda lead_id, record: calls.append(lead_id)).run(
        [RawLead(id="x", name="No Site")]
    )
    assert calls == []


def test_concurrency_is_bounded():
    active = []
    peak = []
    lock = threading.Lock()
    release = threading.Event()
    pipeline = _pipeline()
    original = pipeline.enrich

    def tracked(lead):
        with lock:
            active.append(lead.id)
            peak.append(len(active))
        release.wait(0.05)
        try:
            return original(lead)
        finally:
            with lock:
                active.remove(lead.id)

    pipeline.enrich = tracked
    leads = [RawLead(id=str(index), name=f"Venue {index}", website=f"venue{index}.com") for index in range(8)]

    summary = BatchCoordinator(pipeline, max_workers=3).run(leads)

    assert summary.succeeded == 8
    assert max(peak) <= 3


def test_max_workers_defaults_to_settings():
    coordinator = BatchCoordinator(_pipeline(enrich_max_workers=7))
    assert coordinator.max_workers == 7


def test_persistence_for_modes():
    assert persistence_for("none") is None
    assert persistence_for("db") is batch.upsert_enrichment
    assert persistence_for("callback") is batch.post_enrichment_result
    with pytest.raises(ValueError):
        persistence_for("s3")


def test_extractor_timeout_still_succeeds():
    class TimingOutExtractor:
        def extract(self, urls, *, formats, timeout, wait_time):
            raise requests.Timeout("read timed out")

    pipeline = EnrichmentPipeline(TimingOutExtractor(), PromptedEnrichmentClient(FakeCompletion()), Settings())
    lead = RawLead(id="t", name="Harbor Loft", website="harborloft.com", contact_email="owner@harborloft.com")

    summary = BatchCoordinator(pipeline).run([lead])

    outcome = summary.outcomes[0]
    assert outcome.status == "success"
    assert outcome.partial is True
    assert outcome.record.event_manager_email == "owner@harborloft.com"
