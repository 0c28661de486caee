from datetime import datetime, timezone

import pytest

import database as db
from research.orchestrator import (
    CalendarResults,
    CalendarSource,
    OrganizingCompany,
    ResearchIssue,
    ResearchPhase,
    ResearchState,
)
from research.validation import ConfidenceScore

VERIFIED_AT = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)


def _state(**overrides):
    state = ResearchState(festival_id="fest-1", festival_name="Testival")
    state.phase = ResearchPhase.COMPLETED
    for key, value in overrides.items():
        setattr(state, key, value)
    return state


class FakeQuery:
    def __init__(self, table, calls, error=None):
        self.table = table
        self.calls = calls
        self.error = error

    def update(self, values):
        self.calls.append(("update", self.table, values))
        return self

    def eq(self, column, value):
        self.calls.append(("eq", column, value))
        return self

    def execute(self):
        if self.error:
            raise self.error
        return None


class FakeSupabase:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def table(self, name):
        return FakeQuery(name, self.calls, self.error)


def test_build_update_with_results():
    state = _state(
        discovered_homepage="https://www.testival.nl/",
        organizing_company=OrganizingCompany(name="Acme Events", confidence=0.8, kvk_number="12345678"),
        calendar_results=CalendarResults(sources=[CalendarSource(name="Festivalinfo", found=True)], confidence=0.45),
        overall_confidence=0.42,
        confidence_level="medium",
        warnings=[ResearchIssue(phase="fetchNews", message="No news articles found")],
    )

    update = db.build_research_update(state, VERIFIED_AT)

    assert update["homepage_url"] == "https://www.testival.nl/"
    assert update["organizing_company"] == "Acme Events"
    assert update["last_verified"] == "2025-06-01T09:00:00+00:00"
    data = update["research_data"]
    assert data["company"]["kvkNumber"] == "12345678"
    assert data["calendar"]["sources"][0]["found"] is True
    assert data["news"] is None
    assert data["confidence"] == {"overall": 0.42, "level": "medium"}
    assert data["meta"]["phase"] == "completed"
    assert data["meta"]["warnings"][0]["message"] == "No news articles found"
    assert data["aiAssessment"] is None


def test_build_update_includes_ai_assessment():
    state = _state(ai_assessment=ConfidenceScore(score=0.55, level="medium", reasoning="Partial results"))

    data = db.build_research_update(state, VERIFIED_AT)["research_data"]

    assert data["aiAssessment"] == {"score": 0.55, "level": "medium", "reasoning": "Partial results"}


def test_build_update_leaves_unknown_columns_alone():
    update = db.build_research_update(_state(organizing_company=OrganizingCompany()), VERIFIED_AT)

    assert "homepage_url" not in update
    assert "organizing_company" not in update


def test_save_research_result():
    supabase = FakeSupabase()

    assert db.save_research_result(_state(), client=supabase) is True
    assert supabase.calls[0][:2] == ("update", "festivals")
    assert supabase.calls[1] == ("eq", "id", "fest-1")


def test_save_research_result_reports_failure():
    assert db.save_research_result(_state(), client=FakeSupabase(RuntimeError("permission denied"))) is False


def test_get_client_requires_configuration(monkeypatch):
    monkeypatch.delenv("NEXT_PUBLIC_SUPABASE_URL", raising=False)
    monkeypatch.delenv("NEXT_PUBLIC_SUPABASE_ANON_KEY", raising=False)

    assert db.is_configured() is False
    with pytest.raises(RuntimeError):
        db.get_client()
