import pytest

from research.apify import ActorRunResult
from research.orchestrator import (
    LinkedInConnection,
    OrchestratorOptions,
    ResearchOrchestrator,
    ResearchPhase,
    ResearchState,
    company_confidence,
    determine_role,
    extract_company_candidates,
    linkedin_people_confidence,
    verify_employment,
)
from research.validation import CompanyValidation, ConfidenceScore


class FakeApify:
    """Canned search results keyed by a query fragment and page content keyed by URL."""

    def __init__(self, searches=None, pages=None, failing_queries=()):
        self.searches = searches or {}
        self.pages = pages or {}
        self.failing_queries = failing_queries
        self.queries = []

    def google_search(self, query, results_per_page=5, max_retries=2):
        self.queries.append(query)
        for fragment in self.failing_queries:
            if fragment in query:
                raise RuntimeError(f"search failed for {fragment}")
        for fragment, results in self.searches.items():
            if fragment in query:
                return results
        return []

    def fetch_page(self, query, max_retries=1):
        return self.pages.get(query)

    def run_actor(self, actor_id, run_input, max_retries=2):
        return ActorRunResult(success=False)


class FakeAI:
    def __init__(self, available=False, company=None):
        self.available = available
        self.company = company

    def is_available(self):
        return self.available

    def validate_company_name(self, festival_name, extracted_company, source_url, source_content=None):
        return self.company

    def generate_confidence_score(self, festival_name, *counts):
        self.scored = (festival_name,) + counts
        return ConfidenceScore(score=0.9, level="high", reasoning="fake assessment")


SEARCHES = {
    "official website": [
        {"url": "https://www.facebook.com/testival", "title": "Testival | Facebook"},
        {"url": "https://www.testival.nl/", "title": "Testival"},
    ],
    'site:linkedin.com/company "Acme Events"': [
        {
            "url": "https://nl.linkedin.com/company/acme-events",
            "title": "Acme Events | LinkedIn",
            "snippet": "Events agency from Utrecht",
        }
    ],
    '"works at Acme Events"': [
        {
            "url": "https://nl.linkedin.com/in/jan-jansen",
            "title": "Jan Jansen - Directeur - Acme Events | LinkedIn",
            "snippet": "Directeur at Acme Events",
        }
    ],
    '"Testival" organizer': [
        {
            "url": "https://nl.linkedin.com/in/piet-pietersen",
            "title": "Piet Pietersen - Festival Producer",
            "snippet": "Producer of Testival",
        },
        {"url": "https://nl.linkedin.com/in/jan-jansen", "title": "Jan Jansen - Directeur"},
    ],
    "news OR review": [
        {"url": "https://www.nu.nl/testival-2025", "title": "Testival groeit"},
        {"url": "https://www.facebook.com/testival/posts/1", "title": "Testival"},
    ],
}

PAGES = {
    "https://www.testival.nl/": {"markdown": "Georganiseerd door Acme Events. © 2025 Acme Events"},
    "https://www.testival.nl/privacy": {"markdown": "Acme Events B.V. KvK: 12345678"},
    "https://www.nu.nl/testival-2025": {"markdown": "Testival trekt 20.000 bezoekers"},
    "https://www.festivalinfo.nl/zoek/?q=Testival": {"markdown": "Testival 2025 en Testival 2039"},
}


def _orchestrator(apify=None, ai=None, **options):
    values = {"parallel_execution": False}
    values.update(options)
    return ResearchOrchestrator(
        OrchestratorOptions(**values),
        apify=apify or FakeApify(SEARCHES, PAGES),
        ai=ai or FakeAI(),
    )


def test_verify_employment():
    explicit = verify_employment("Jan Jansen", "Works at Acme Events since 2019", "Acme Events")
    dutch = verify_employment("Jan Jansen - Producer bij Acme Events", "", "Acme Events")
    mention = verify_employment("Jan Jansen", "Acme Events fan", "Acme Events")
    nothing = verify_employment("Jan Jansen", "Freelancer", "Acme Events")

    assert (explicit.is_verified, explicit.confidence, explicit.match_type) == (True, 1.0, "explicit_employment")
    assert (dutch.is_verified, dutch.match_type) == (True, "title_match")
    assert (mention.is_verified, mention.confidence) == (False, 0.4)
    assert nothing.match_type == "unverified"
    assert nothing.evidence == ["No employment patterns matched"]


def test_verify_employment_escapes_company_name():
    result = verify_employment("", "works at a+b events", "A+B Events")

    assert result.is_verified is True


def test_determine_role():
    assert determine_role("Founder & CEO") == "decision_maker"
    assert determine_role("Eigenaar") == "decision_maker"
    assert determine_role("Head of Programming") == "manager"
    assert determine_role("Marketing") == "team_member"
    assert determine_role("Student") == "unknown"
    assert determine_role(None) == "unknown"


def test_company_candidates_and_confidence():
    candidates, kvk = extract_company_candidates("Stichting Zomerpret. KvK: 87654321")

    assert candidates == [("Zomerpret", 1)]
    assert kvk == "87654321"
    assert company_confidence(1, False) == pytest.approx(0.45)
    assert company_confidence(10, False) == 0.9
    assert company_confidence(10, True) == 1.0


def test_linkedin_people_confidence():
    people = [
        LinkedInConnection(name="A", url="u1", role="decision_maker", employment_verified=True),
        LinkedInConnection(name="B", url="u2", role="manager"),
    ]

    assert linkedin_people_confidence([]) == 0.0
    assert linkedin_people_confidence(people) == pytest.approx(0.55)


def test_full_research_run():
    phases = []
    orchestrator = _orchestrator()
    orchestrator.on_progress = lambda state: phases.append(state.phase)

    state = orchestrator.run_research("fest-1", "Testival")

    assert state.phase == ResearchPhase.COMPLETED
    assert state.discovered_homepage == "https://www.testival.nl/"
    assert state.organizing_company.name == "Acme Events"
    assert state.organizing_company.kvk_number == "12345678"
    assert state.organizing_company.confidence == pytest.approx(0.95)
    assert state.company_linked_in.name == "Acme Events"
    assert state.company_linked_in.url == "https://www.linkedin.com/company/acme-events"

    assert [c.name for c in state.linked_in_connections] == ["Jan Jansen", "Piet Pietersen"]
    jan, piet = state.linked_in_connections
    assert (jan.role, jan.employment_verified, jan.discovered_via) == ("decision_maker", True, "company_employee_search")
    assert (piet.role, piet.employment_verified) == ("manager", False)
    assert jan.url == "https://www.linkedin.com/in/jan-jansen"
    assert state.linked_in_results.searched_with == "Company: Acme Events"
    assert state.linked_in_results.confidence == pytest.approx(0.55)

    assert [a.source for a in state.news_results.articles] == ["nu.nl"]
    assert state.news_results.articles[0].summary == "Testival trekt 20.000 bezoekers..."

    festivalinfo = state.calendar_results.sources[0]
    assert (festivalinfo.found, festivalinfo.edition_year, festivalinfo.is_current) == (True, 2039, True)
    assert sum(source.found for source in state.calendar_results.sources) == 1

    assert state.overall_confidence == pytest.approx(0.7425)
    assert state.confidence_level == "high"
    assert state.quality_score.company_discovery == 95
    assert state.quality_score.linkedin_connections == 55
    assert state.quality_score.data_completeness == 100
    assert state.ai_assessment.score == pytest.approx(1.0)
    assert "heuristic" in state.ai_assessment.reasoning
    assert state.errors == []
    assert phases[-1] == ResearchPhase.COMPLETED
    assert ResearchPhase.EXTRACTING_COMPANY in phases


def test_parallel_run_fills_news_and_calendars():
    state = _orchestrator(parallel_execution=True).run_research("fest-1", "Testival")

    assert state.phase == ResearchPhase.COMPLETED
    assert len(state.news_results.articles) == 1
    assert len(state.calendar_results.sources) == 5


def test_given_url_skips_discovery():
    apify = FakeApify(SEARCHES, PAGES)

    state = _orchestrator(apify=apify).run_research("fest-1", "Testival", "https://www.testival.nl/")

    assert state.discovered_homepage == "https://www.testival.nl/"
    assert not any("official website" in query for query in apify.queries)


def test_failing_phase_does_not_stop_the_run():
    apify = FakeApify(SEARCHES, PAGES, failing_queries=("site:linkedin.com/company",))

    state = _orchestrator(apify=apify).run_research("fest-1", "Testival")

    assert state.phase == ResearchPhase.COMPLETED
    assert [error.phase for error in state.errors] == ["searchLinkedInCompany"]
    assert state.company_linked_in is None
    assert state.linked_in_results is not None


def test_nothing_found():
    state = _orchestrator(apify=FakeApify()).run_research("fest-2", "Onbekend")

    assert state.phase == ResearchPhase.COMPLETED
    assert state.discovered_homepage is None
    assert state.overall_confidence == 0.0
    assert state.confidence_level == "low"
    assert [warning.phase for warning in state.warnings] == [
        "discoverWebsite",
        "searchLinkedInCompany",
        "searchLinkedInEmployees",
        "fetchNews",
        "verifyCalendars",
    ]


def test_invalid_company_is_downgraded_by_ai():
    ai = FakeAI(available=True, company=CompanyValidation(is_valid=False, confidence=0.9))
    orchestrator = _orchestrator(ai=ai)
    orchestrator.state = ResearchState(festival_id="fest-1", festival_name="Testival")

    orchestrator.extract_company("https://www.testival.nl/")

    company = orchestrator.state.organizing_company
    assert company.name == "Acme Events"
    assert company.confidence == 0.3
    assert company.validated is True
    assert "potentially invalid" in orchestrator.state.warnings[0].message


def test_ai_can_be_disabled_by_options():
    ai = FakeAI(available=True, company=CompanyValidation(is_valid=True, confidence=0.99, normalized_name="X"))
    orchestrator = _orchestrator(ai=ai, enable_ai_validation=False)
    orchestrator.state = ResearchState(festival_id="fest-1", festival_name="Testival")

    orchestrator.extract_company("https://www.testival.nl/")

    assert orchestrator.state.organizing_company.name == "Acme Events"
    assert orchestrator.state.organizing_company.validated is False


def test_options_bounds():
    with pytest.raises(ValueError):
        OrchestratorOptions(max_retries=6)


def test_linkedin_urls_are_standardized_and_filtered_by_type():
    searches = {
        'site:linkedin.com/company "Testival"': [
            {"url": "https://nl.linkedin.com/in/not-a-company", "title": "Someone"},
            {"url": "https://be.linkedin.com/company/testival-bv?trk=public", "title": "Testival BV | LinkedIn"},
        ],
        '"Testival" organizer': [
            {"url": "https://www.linkedin.com/company/testival-bv", "title": "Testival BV - Company"},
            {"url": "https://nl.linkedin.com/in/kees-de-vries?originalSubdomain=nl", "title": "Kees de Vries - Organizer"},
            {"url": "https://www.linkedin.com/in/kees-de-vries", "title": "Kees de Vries - Organizer"},
        ],
    }
    orchestrator = _orchestrator(apify=FakeApify(searches))
    orchestrator.state = ResearchState(festival_id="fest-1", festival_name="Testival")

    orchestrator.search_linkedin_company()
    orchestrator.search_linkedin_employees()

    assert orchestrator.state.company_linked_in.url == "https://www.linkedin.com/company/testival-bv"
    assert orchestrator.state.company_linked_in.name == "Testival BV"
    assert [c.url for c in orchestrator.state.linked_in_connections] == ["https://www.linkedin.com/in/kees-de-vries"]


def test_ai_assessment_uses_llm_when_available():
    ai = FakeAI(available=True, company=CompanyValidation(is_valid=True, confidence=0.9))
    orchestrator = _orchestrator(ai=ai)
    orchestrator.state = ResearchState(
        festival_id="fest-1", festival_name="Testival", discovered_homepage="https://www.testival.nl/"
    )

    orchestrator.score_results()

    assert orchestrator.state.ai_assessment.reasoning == "fake assessment"
    assert ai.scored == ("Testival", False, 0, 0, 0, True)
