import pytest

from venue_enrichment.core.cache import TTLCache
from venue_enrichment.core.config import Settings
from venue_enrichment.enrichment.pipeline import EnrichmentPipeline
from venue_enrichment.enrichment.prompting import PromptedEnrichmentClient
from venue_enrichment.jobs import server
from venue_enrichment.jobs.url_jobs import UrlJobRunner, UrlJobStore
from venue_enrichment.models import ExtractedContent, ExtractionResponse, RawLead

PAGE = (
    "Oakview Hall hosts weddings and corporate galas for up to 250 guests. "
    "Reach our events team at events@oakviewhall.com or (555) 234-9876."
)


class StaticExtractor:
    def extract(self, urls, *, formats, timeout, wait_time):
        return ExtractionResponse(success=True, content=ExtractedContent(url=urls[0], text=PAGE))


class FakeCompletion:
    def complete(self, system_prompt, user_prompt):
        return "{}"


@pytest.fixture
def client(monkeypatch):
    pipeline = EnrichmentPipeline(StaticExtractor(), PromptedEnrichmentClient(FakeCompletion()), Settings())
    monkeypatch.setattr(server, "get_pipeline", lambda: pipeline)
    return server.app.test_client()


def test_root_and_health_endpoints(client, monkeypatch):
    monkeypatch.setattr(server, "get_settings", lambda: Settings(firecrawl_api_key="fc"))

    assert client.get("/").status_code == 200
    response = client.get("/healthz")
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "ok"
    assert body["extractor"] == "firecrawl"
    assert body["scoring_profile"] == "standard"


def test_enrich_returns_record(client):
    response = client.post(
        "/enrich",
        json={"id": "lead-1", "name": "Oakview Hall", "website_url": "oakviewhall.com"},
    )

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["id"] == "lead-1"
    assert data["status"] == "success"
    assert data["enrichmentData"]["eventManagerEmail"] == "events@oakviewhall.com"
    assert data["enrichmentData"]["venueCapacity"] == 250
    assert data["enrichmentData"]["leadScore"]["potential"] in {"medium", "high"}


def test_enrich_validates_payload(client):
    assert client.post("/enrich", json={}).status_code == 400
    assert client.post("/enrich", json={"id": "1"}).status_code == 400
    assert client.post("/enrich", json=["not", "an", "object"]).status_code == 400
    assert client.post("/enrich", json={"id": "1", "name": "Barn", "website": "a.com", "persist": "s3"}).status_code == 400


def test_enrich_without_website_is_bad_request(client):
    response = client.post("/enrich", json={"id": "1", "name": "Barn"})
    assert response.status_code == 400
    assert "no usable website" in response.get_json()["error"]


def test_enrich_persistence_failure_returns_500(client, monkeypatch):
    def failing_upsert(lead_id, record):
        raise ConnectionError("db down")

    monkeypatch.setattr(server, "persistence_for", lambda mode: failing_upsert)
    response = client.post(
        "/enrich",
        json={"id": "1", "name": "Oakview Hall", "website": "oakviewhall.com", "persist": "db"},
    )

    assert response.status_code == 500
    assert "db down" in response.get_json()["error"]


def test_enrich_batch_with_inline_leads(client):
    response = client.post(
        "/enrich/batch",
        json={
            "leads": [
                {"id": "1", "name": "Oakview Hall", "website": "oakviewhall.com"},
                {"id": "2", "name": "No Site"},
            ],
            "max_workers": 2,
        },
    )

    assert response.status_code == 200
    summary = response.get_json()["data"]
    assert summary["processed"] == 2
    assert summary["succeeded"] == 1
    assert summary["skipped"] == 1
    assert summary["errors"] == []
    assert [result["id"] for result in summary["results"]] == ["1", "2"]


def test_enrich_batch_loads_lead_ids(client, monkeypatch):
    requested = []

    def fake_fetch(lead_ids):
        requested.extend(lead_ids)
        return [RawLead(id="7", name="Oakview Hall", website="oakviewhall.com")]

    monkeypatch.setattr(server, "fetch_leads", fake_fetch)
    response = client.post("/enrich/batch", json={"leadIds": ["7"]})

    assert response.status_code == 200
    assert requested == ["7"]
    assert response.get_json()["data"]["succeeded"] == 1


def test_enrich_batch_validates_payload(client):
    assert client.post("/enrich/batch", json={}).status_code == 400
    assert client.post("/enrich/batch", json={"leads": []}).status_code == 400
    assert client.post("/enrich/batch", json={"leads": "nope"}).status_code == 400
    assert client.post("/enrich/batch", json={"leads": ["nope"]}).status_code == 400
    assert client.post("/enrich/batch", json={"leads": [{"id": "1"}]}).status_code == 400
    assert client.post("/enrich/batch", json={"leadIds": ["1"], "persist": "s3"}).status_code == 400
    assert client.post("/enrich/batch", json={"leadIds": ["1"], "max_workers": 0}).status_code == 400
    assert client.post("/enrich/batch", json={"leadIds": ["1"], "max_workers": "many"}).status_code == 400


class InlineExecutor:
    def submit(self, fn, *args):
        fn(*args)


@pytest.fixture
def url_jobs(client, monkeypatch):
    runner = UrlJobRunner(server.get_pipeline(), UrlJobStore(TTLCache(60)), InlineExecutor())
    monkeypatch.setattr(server, "get_url_jobs", lambda: runner)
    return runner


def test_enrich_url_queues_job_and_reports_result(client, url_jobs):
    response = client.post("/enrich/url", json={"url": "oakviewhall.com", "name": "Oakview Hall"})

    assert response.status_code == 202
    job_id = response.get_json()["data"]["jobId"]

    status = client.get(f"/enrich/status/{job_id}")
    assert status.status_code == 200
    data = status.get_json()["data"]
    assert data["status"] == "complete"
    assert data["progress"] == 100
    assert data["result"]["venueName"] == "Oakview Hall"
    assert data["result"]["eventManagerEmail"] == "events@oakviewhall.com"


def test_enrich_url_validates_payload(client, url_jobs):
    assert client.post("/enrich/url", json={}).status_code == 400
    assert client.post("/enrich/url", json={"url": "   "}).status_code == 400
    assert client.post("/enrich/url", json=["oakviewhall.com"]).status_code == 400
    response = client.post("/enrich/url", json={"url": "ftp://oakviewhall.com"})
    assert response.status_code == 400
    assert "unsupported scheme" in response.get_json()["error"]


def test_enrich_status_unknown_job(client, url_jobs):
    response = client.get("/enrich/status/does-not-exist")
    assert response.status_code == 404
