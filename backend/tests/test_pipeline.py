import json

import pytest

from scraper.config import ParserConfig, eblive_config, festivalinfo_config
from scraper.eblive import EBLiveScraper
from scraper.festivalinfo import FestivalInfoScraper

BASE_URL = "https://www.festivalinfo.nl/festivals/"
EBLIVE_URL = "https://www.eblive.nl/festivals/"


class FakeBrowser:
    """Serves canned HTML per URL; a list of responses is consumed one per fetch."""

    def __init__(self, pages):
        self.pages = pages
        self.fetched = []
        self.clicked = []
        self.closed = False

    def fetch(self, url, timeout_ms=60000, wait_for=None):
        self.fetched.append(url)
        response = self.pages[url]
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def click_if_present(self, selector, timeout_ms=5000):
        self.clicked.append(selector)
        return True

    def wait(self, milliseconds):
        pass

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def log_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))


def _festival_links(*festivals):
    return "".join(
        f'<a href="/festival/{festival_id}/"><strong>{name}</strong> Amsterdam, Nederland 2 dagen 5</a>'
        for festival_id, name in festivals
    )


def _festivalinfo_config(tmp_path, **overrides):
    values = {
        "output_dir": tmp_path,
        "max_pages": 2,
        "delay_ms": 0,
        "detail_delay_ms": 0,
        "parser": ParserConfig(reference_year=2025),
    }
    values.update(overrides)
    return festivalinfo_config(**values)


def _festivalinfo_pages():
    return {
        BASE_URL: _festival_links(("1", "Alpha"), ("2", "Bravo")),
        f"{BASE_URL}?page=2": _festival_links(("2", "Bravo"), ("3", "Charlie")),
    }


def test_festivalinfo_run_dedupes_and_writes_snapshot(tmp_path):
    browser = FakeBrowser(_festivalinfo_pages())
    progress = []
    scraper = FestivalInfoScraper(_festivalinfo_config(tmp_path), browser=browser, on_progress=progress.append)

    result, festivals = scraper.run()

    assert result.success is True
    assert [festival.name for festival in festivals] == ["Alpha", "Bravo", "Charlie"]
    assert result.metrics.total_festivals == 4
    assert result.metrics.unique_festivals == 3
    assert result.metrics.duplicates == 1
    assert result.metrics.pages == 2
    assert result.metrics.festivals_by_page == {1: 2, 2: 2}
    assert progress == [0.5, 1.0]
    # page 1 reuses the index HTML
    assert browser.fetched == [BASE_URL, f"{BASE_URL}?page=2"]
    assert browser.closed is False

    assert result.output_file.endswith("_3festivals.json")
    records = json.loads((tmp_path / result.output_file).read_text(encoding="utf-8"))
    assert [record["name"] for record in records] == ["Alpha", "Bravo", "Charlie"]
    assert records[0]["city"] == "Amsterdam"
    assert records[0]["hash"]
    assert len(list(tmp_path.glob("festivalinfo_metrics_*.json"))) == 1
    assert result.metrics.start_time.tzinfo is not None
    assert result.metrics.end_time >= result.metrics.start_time


def test_second_run_starts_with_fresh_dedup_state(tmp_path):
    scraper = FestivalInfoScraper(_festivalinfo_config(tmp_path), browser=FakeBrowser(_festivalinfo_pages()))

    first, first_festivals = scraper.run()
    second, second_festivals = scraper.run()

    assert [festival.name for festival in first_festivals] == ["Alpha", "Bravo", "Charlie"]
    assert [festival.name for festival in second_festivals] == ["Alpha", "Bravo", "Charlie"]
    for result in (first, second):
        assert result.success is True
        assert result.metrics.total_festivals == 4
        assert result.metrics.unique_festivals == 3
        assert result.metrics.duplicates == 1
    assert second_festivals[0].hash == first_festivals[0].hash
    assert scraper.deduplicator.unique_count == 3


def test_failed_page_is_skipped(tmp_path):
    pages = _festivalinfo_pages()
    pages[f"{BASE_URL}?page=2"] = RuntimeError("timeout")
    scraper = FestivalInfoScraper(_festivalinfo_config(tmp_path), browser=FakeBrowser(pages))

    result, festivals = scraper.run()

    assert result.success is True
    assert len(festivals) == 2
    assert result.metrics.errors == 1
    assert result.metrics.festivals_by_page[2] == 0


def test_failed_index_page_reports_error(tmp_path):
    pages = {BASE_URL: RuntimeError("net::ERR_NAME_NOT_RESOLVED")}
    scraper = FestivalInfoScraper(_festivalinfo_config(tmp_path), browser=FakeBrowser(pages))

    result, festivals = scraper.run()

    assert result.success is False
    assert "ERR_NAME_NOT_RESOLVED" in result.error
    assert festivals == []
    assert result.metrics.time_elapsed
    assert not list(tmp_path.glob("*festivals.json"))


def test_detail_pages_enrich_first_festivals(tmp_path):
    pages = _festivalinfo_pages()
    pages["https://www.festivalinfo.nl/festival/1/"] = (
        '<html><body><div class="leftcol"><p>Het eerste festival.</p></div>'
        "<strong>4 juli t/m 6 juli 2025</strong></body></html>"
    )
    config = _festivalinfo_config(tmp_path, extract_detail_pages=True, detail_limit=1)

    result, festivals = FestivalInfoScraper(config, browser=FakeBrowser(pages)).run()

    assert result.success is True
    assert festivals[0].description == "Het eerste festival."
    assert festivals[0].start_date == "2025-07-04"
    assert festivals[1].description is None


def test_eblive_run_retries_pages(tmp_path):
    first_page = EBLIVE_URL + (
        "?filters%5Bsearch%5D=&filters%5Baddress%5D=&filters%5Bdistance%5D=&order_by=upcoming&page_nr=1"
    )
    second_page = first_page[:-1] + "2"
    listing = '<main><a href="/festivals/index?festival_id={id}"><h5>{name}</h5>Amsterdam Za 31 mei</a></main>'
    pages = {
        EBLIVE_URL: "<h5>30 festivals gevonden</h5>",
        first_page: listing.format(id=1, name="Een"),
        second_page: [RuntimeError("timeout"), listing.format(id=2, name="Twee")],
    }
    browser = FakeBrowser(pages)
    config = eblive_config(output_dir=tmp_path, delay_ms=0, parser=ParserConfig(reference_year=2025))

    result, festivals = EBLiveScraper(config, browser=browser).run()

    assert result.success is True
    assert [festival.name for festival in festivals] == ["Een", "Twee"]
    assert festivals[0].start_date == "2025-05-31"
    assert browser.clicked == ['button:has-text("Accepteren en doorgaan")']
    assert browser.fetched.count(second_page) == 2
    assert result.output_file.startswith("eblive_")
