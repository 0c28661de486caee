import json

import pytest
from fastapi.testclient import TestClient

import main
from research.orchestrator import OrganizingCompany, ResearchPhase, ResearchState
from scraper.config import festivalinfo_config
from scraper.models import ScrapeMetrics, ScrapeResult

client = TestClient(main.app)


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    return tmp_path


def _write(directory, name, records):
    (directory / name).write_text(json.dumps(records), encoding="utf-8")


FESTIVALS = [
    {"id": "1", "name": "Testival", "location": {"city": "Amsterdam", "country": "Nederland"}},
    {"id": "2", "name": "Zomerfeest", "location": {"city": "Utrecht", "country": "Nederland"}},
    {"id": "3", "name": "Winterfeest", "location": {"city": "Gent", "country": "België"}},
]


def test_health():
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "apifyConfigured" in response.json()["services"]


def test_unknown_source_is_404(data_dir):
    assert client.get("/api/scrapers/partyflock/data").status_code == 404
    assert client.post("/api/scrapers/partyflock/run").status_code == 404


def test_data_without_snapshots(data_dir):
    response = client.get("/api/scrapers/festivalinfo/data")

    assert response.status_code == 404
    assert response.json()["fileSelectMethod"] == "automatic"


def test_data_latest_snapshot_with_search_and_paging(data_dir):
    _write(data_dir, "festivalinfo_2025-05-10T12-30-00.000Z_3festivals.json", FESTIVALS)

    response = client.get("/api/scrapers/festivalinfo/data", params={"search": "nederland", "limit": 1, "page": 2})

    body = response.json()
    assert response.status_code == 200
    assert body["data"] == [FESTIVALS[1]]
    assert body["pagination"] == {"total": 2, "page": 2, "limit": 1, "pages": 2}
    assert body["file"] == "festivalinfo_2025-05-10T12-30-00.000Z_3festivals.json"
    assert body["fileType"] == "real"
    assert body["isMockData"] is False


def test_data_explicit_file(data_dir):
    _write(data_dir, "festivalinfo_mock_data.json", {"festivals": FESTIVALS[:1]})

    response = client.get("/api/scrapers/festivalinfo/data", params={"file": "festivalinfo_mock_data.json"})

    assert response.status_code == 200
    assert response.json()["isMockData"] is True
    assert response.json()["fileSelectMethod"] == "explicit"
    assert client.get("/api/scrapers/festivalinfo/data", params={"file": "../secret.json"}).status_code == 404


def test_data_broken_file(data_dir):
    (data_dir / "festivalinfo_2025-05-10T12-30-00.000Z_3festivals.json").write_text("<html>", encoding="utf-8")

    response = client.get("/api/scrapers/festivalinfo/data")

    assert response.status_code == 500
    assert "Failed to parse JSON" in response.json()["error"]


def test_cleanup(data_dir):
    for count in (1, 2, 3):
        _write(data_dir, f"eblive_2025-0{count}-01T00-00-00.000Z_{count}festivals.json", [])

    response = client.post("/api/scrapers/eblive/cleanup", json={"keepCount": 1})

    assert response.status_code == 200
    assert response.json()["kept"] == ["eblive_2025-03-01T00-00-00.000Z_3festivals.json"]
    assert len(response.json()["deleted"]) == 2


def test_cleanup_missing_directory(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "missing"))

    assert client.post("/api/scrapers/eblive/cleanup").status_code == 404


class FakeScraper:
    configs = []

    def __init__(self, config):
        self.configs.append(config)
        self.success = config.max_pages != 99

    def run(self):
        metrics = ScrapeMetrics(total_festivals=3, unique_festivals=3, pages=1)
        if not self.success:
            return ScrapeResult(success=False, source="festivalinfo", metrics=metrics, error="boom"), []
        return ScrapeResult(success=True, source="festivalinfo", metrics=metrics, output_file="f.json"), []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass


def test_run_scraper(monkeypatch):
    monkeypatch.setattr(main, "SCRAPERS", {"festivalinfo": (FakeScraper, festivalinfo_config)})

    response = client.post("/api/scrapers/festivalinfo/run", json={"maxPages": 2, "extractDetailPages": True})

    assert response.status_code == 200
    assert response.json()["outputFile"] == "f.json"
    assert response.json()["metrics"]["uniqueFestivals"] == 3
    assert FakeScraper.configs[-1].max_pages == 2
    assert FakeScraper.configs[-1].extract_detail_pages is True


def test_run_scraper_failure_is_500(monkeypatch):
    monkeypatch.setattr(main, "SCRAPERS", {"festivalinfo": (FakeScraper, festivalinfo_config)})

    response = client.post("/api/scrapers/festivalinfo/run", json={"maxPages": 99})

    assert response.status_code == 500
    assert response.json()["error"] == "boom"


def test_research_requires_apify_token(monkeypatch):
    monkeypatch.delenv("APIFY_API_TOKEN", raising=False)

    response = client.post("/api/research/orchestrated", json={"festivalId": "1", "festivalName": "Testival"})

    assert response.status_code == 503
    assert response.json()["error"] == "APIFY_API_TOKEN not configured"


@pytest.mark.parametrize(
    "body",
    [
        {"festivalName": "Testival"},
        {"festivalId": "1", "festivalName": ""},
        {"festivalId": "1", "festivalName": "Testival", "festivalUrl": "not-a-url"},
        {"festivalId": "1", "festivalName": "Testival", "options": {"maxRetries": 9}},
    ],
)
def test_research_rejects_invalid_body(monkeypatch, body):
    monkeypatch.setenv("APIFY_API_TOKEN", "test-token")

    response = client.post("/api/research/orchestrated", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request data"
    assert response.json()["details"]


class FakeOrchestrator:
    options = None

    def __init__(self, options, on_progress=None):
        FakeOrchestrator.options = options
        self.on_progress = on_progress

    def run_research(self, festival_id, festival_name, festival_url=None):
        state = ResearchState(festival_id=festival_id, festival_name=festival_name, festival_url=festival_url)
        state.phase = ResearchPhase.EXTRACTING_COMPANY
        state.organizing_company = OrganizingCompany(name="Acme Events", confidence=0.6)
        self.on_progress(state)
        state.phase = ResearchPhase.COMPLETED
        state.overall_confidence = 0.5
        state.confidence_level = "medium"
        return state


def _events(response):
    return [json.loads(line[len("data: "):]) for line in response.text.split("\n\n") if line.startswith("data: ")]


def test_research_streams_progress_and_result(monkeypatch):
    monkeypatch.setenv("APIFY_API_TOKEN", "test-token")
    monkeypatch.setattr(main, "ResearchOrchestrator", FakeOrchestrator)
    monkeypatch.setattr(main.db, "is_configured", lambda: False)

    response = client.post(
        "/api/research/orchestrated",
        json={
            "festivalId": "fest-1",
            "festivalName": "Testival",
            "festivalUrl": "https://www.testival.nl",
            "options": {"enableAIValidation": False, "parallelExecution": False},
        },
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    progress, complete = _events(response)
    assert progress["type"] == "progress"
    assert progress["phase"] == "extracting_company"
    assert progress["data"]["company"]["name"] == "Acme Events"
    assert complete["type"] == "complete"
    assert complete["success"] is True
    assert complete["savedToDatabase"] is False
    assert complete["result"]["festivalId"] == "fest-1"
    assert complete["result"]["confidenceLevel"] == "medium"
    assert FakeOrchestrator.options.enable_ai_validation is False
    assert FakeOrchestrator.options.parallel_execution is False
    assert FakeOrchestrator.options.max_retries == 3


def test_research_saves_when_database_configured(monkeypatch):
    saved = []
    monkeypatch.setenv("APIFY_API_TOKEN", "test-token")
    monkeypatch.setattr(main, "ResearchOrchestrator", FakeOrchestrator)
    monkeypatch.setattr(main.db, "is_configured", lambda: True)
    monkeypatch.setattr(main.db, "save_research_result", lambda state: saved.append(state.festival_id) or True)

    response = client.post("/api/research/orchestrated", json={"festivalId": "fest-2", "festivalName": "Testival"})

    assert _events(response)[-1]["savedToDatabase"] is True
    assert saved == ["fest-2"]


def test_research_info():
    response = client.get("/api/research/orchestrated")

    assert response.status_code == 200
    assert "enableAIValidation" in response.json()["endpoints"]["POST"]["body"]["options"]
