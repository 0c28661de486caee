"""
Research Orchestrator

Enriches one festival through a chain of Apify actor runs and LLM checks:
1. Website discovery (skipped when a URL is given)
2. Organizing company extraction (homepage, /privacy, /contact)
3. LinkedIn company page search
4. LinkedIn people search (company employees, then festival-related)
5. News articles and calendar-site presence (optionally in parallel)
6. Overall confidence, confidence level and quality score

Each phase is guarded on its own: a failing phase records an error and the
run continues with what it has.
"""

from __future__ import annotations

import re
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import quote, urlparse

from pydantic import Field

from scraper.logging_utils import get_logger
from scraper.models import CamelModel

from .apify import RAG_WEB_BROWSER_ACTOR, ResilientApifyClient
from .linkedin import split_profile_title, validate_linkedin_url
from .validation import (
    AIValidationService,
    CompanyValidation,
    ConfidenceScore,
    ContentValidation,
    PersonValidation,
    confidence_level,
    heuristic_confidence_score,
)

logger = get_logger(__name__)


class ResearchPhase(str, Enum):
    NOT_STARTED = "not_started"
    DISCOVERING_WEBSITE = "discovering_website"
    EXTRACTING_COMPANY = "extracting_company"
    SEARCHING_LINKEDIN_COMPANY = "searching_linkedin_company"
    SEARCHING_LINKEDIN_EMPLOYEES = "searching_linkedin_employees"
    FETCHING_NEWS = "fetching_news"
    VERIFYING_CALENDARS = "verifying_calendars"
    VALIDATING_RESULTS = "validating_results"
    COMPLETED = "completed"
    FAILED = "failed"


CALENDAR_SOURCES = [
    {"name": "Festivalinfo", "base_url": "festivalinfo.nl", "search_url": "https://www.festivalinfo.nl/zoek/?q="},
    {"name": "Partyflock", "base_url": "partyflock.nl", "search_url": "https://partyflock.nl/search?query="},
    {"name": "EB Live", "base_url": "eblive.nl", "search_url": "https://www.eblive.nl/?s="},
    {"name": "Festileaks", "base_url": "festileaks.com", "search_url": "https://www.festileaks.com/?s="},
    {"name": "Follow the Beat", "base_url": "followthebeat.nl", "search_url": "https://www.followthebeat.nl/?s="},
]

EXCLUDED_HOMEPAGE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"facebook\.com", r"instagram\.com", r"twitter\.com", r"linkedin\.com", r"youtube\.com",
        r"spotify\.com", r"festivalinfo", r"partyflock", r"eblive", r"festileaks",
    )
]
SOCIAL_DOMAINS = ("linkedin.com", "facebook.com", "instagram.com")

COMPANY_NAME = r"([A-Z][A-Za-z0-9\s&\-']+)"
COMPANY_PATTERNS = [
    re.compile(COMPANY_NAME + r"\s+(?:B\.?V\.?|BV)", re.IGNORECASE),
    re.compile(r"(?:Stichting|Foundation)\s+" + COMPANY_NAME, re.IGNORECASE),
    re.compile(r"(?:organized|organised|georganiseerd)\s+(?:by|door)\s+" + COMPANY_NAME, re.IGNORECASE),
    re.compile(r"©\s*\d{4}\s+" + COMPANY_NAME, re.IGNORECASE),
    re.compile(r"KvK[:\s]+(\d{8})", re.IGNORECASE),
]
KVK_NUMBER = re.compile(r"^\d{8}$")
EDITION_YEAR = re.compile(r"\b(202[4-9]|203\d)\b")
ARTICLE_DATE = re.compile(r"\b(20\d{2}[-/]\d{1,2}[-/]\d{1,2}|\d{1,2}[-/]\d{1,2}[-/]20\d{2})\b")

DECISION_MAKER_TITLE = re.compile(
    r"\b(ceo|founder|owner|eigenaar|directeur|director|managing|general manager|oprichter|bestuurder)\b",
    re.IGNORECASE,
)
MANAGER_TITLE = re.compile(r"\b(manager|head|lead|hoofd|coordinator|producer|programmer)\b", re.IGNORECASE)
TEAM_TITLE = re.compile(
    r"\b(festival|event|booking|marketing|production|operations|artist relations)\b", re.IGNORECASE
)
ROLE_ORDER = {"decision_maker": 0, "manager": 1, "team_member": 2, "unknown": 3}

MAX_CONNECTIONS = 15
MAX_NEWS_ARTICLES = 5


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---- state models ----


class EmploymentVerification(CamelModel):
    is_verified: bool = False
    confidence: float = 0.0
    match_type: str = "unverified"
    evidence: list[str] = Field(default_factory=list)


class LinkedInConnection(CamelModel):
    name: str
    title: Optional[str] = None
    url: str
    company: Optional[str] = None
    role: str = "unknown"
    employment_verified: bool = False
    verification: Optional[EmploymentVerification] = None
    discovered_via: str = "general_search"
    validated: bool = False
    validation: Optional[PersonValidation] = None


class OrganizingCompany(CamelModel):
    name: Optional[str] = None
    confidence: float = 0.0
    kvk_number: Optional[str] = None
    validated: bool = False
    validation_result: Optional[CompanyValidation] = None


class CompanyLinkedIn(CamelModel):
    url: str
    name: str
    description: Optional[str] = None
    employee_count: Optional[int] = None
    verified: bool = False


class LinkedInPerson(CamelModel):
    name: str
    title: Optional[str] = None
    url: str
    company: Optional[str] = None
    validated: bool = False
    validation: Optional[PersonValidation] = None


class LinkedInResults(CamelModel):
    people: list[LinkedInPerson] = Field(default_factory=list)
    searched_with: str = ""
    confidence: float = 0.0


class NewsArticle(CamelModel):
    title: str
    url: str
    source: Optional[str] = None
    date: Optional[str] = None
    summary: Optional[str] = None
    validated: bool = False
    validation: Optional[ContentValidation] = None


class NewsResults(CamelModel):
    articles: list[NewsArticle] = Field(default_factory=list)
    confidence: float = 0.0


class CalendarSource(CamelModel):
    name: str
    found: bool = False
    url: Optional[str] = None
    edition_year: Optional[int] = None
    is_current: Optional[bool] = None


class CalendarResults(CamelModel):
    sources: list[CalendarSource] = Field(default_factory=list)
    confidence: float = 0.0


class QualityScore(CamelModel):
    overall: int = 0
    company_discovery: int = 0
    linkedin_connections: int = 0
    data_completeness: int = 0


class ResearchIssue(CamelModel):
    phase: str
    message: str
    timestamp: str = Field(default_factory=_now)


class ResearchState(CamelModel):
    phase: ResearchPhase = ResearchPhase.NOT_STARTED
    festival_id: str
    festival_name: str
    festival_url: Optional[str] = None
    started_at: str = Field(default_factory=_now)
    last_updated_at: str = Field(default_factory=_now)
    attempts: int = 0

    discovered_homepage: Optional[str] = None
    organizing_company: Optional[OrganizingCompany] = None
    company_linked_in: Optional[CompanyLinkedIn] = None
    linked_in_connections: list[LinkedInConnection] = Field(default_factory=list)
    linked_in_results: Optional[LinkedInResults] = None
    news_results: Optional[NewsResults] = None
    calendar_results: Optional[CalendarResults] = None
    quality_score: Optional[QualityScore] = None

    errors: list[ResearchIssue] = Field(default_factory=list)
    warnings: list[ResearchIssue] = Field(default_factory=list)
    overall_confidence: float = 0.0
    confidence_level: str = "low"
    ai_assessment: Optional[ConfidenceScore] = None

    @property
    def verified_count(self) -> int:
        return sum(1 for connection in self.linked_in_connections if connection.employment_verified)

    @property
    def decision_maker_count(self) -> int:
        return sum(1 for connection in self.linked_in_connections if connection.role == "decision_maker")


class OrchestratorOptions(CamelModel):
    max_retries: int = Field(3, ge=1, le=5)
    enable_ai_validation: bool = True
    min_confidence_to_pass: float = 0.3
    parallel_execution: bool = True
    fallback_to_basic_search: bool = True


# ---- pure helpers ----


def verify_employment(profile_title: str, profile_snippet: str, company_name: str) -> EmploymentVerification:
    """
    Check a LinkedIn search hit for signs that the person works at ``company_name``.

    The strongest matching pattern wins; weights of 0.7 and up count as verified.
    """
    company = re.escape(company_name.lower())
    text = f"{profile_title} {profile_snippet}".lower()
    patterns = [
        (f"works at {company}", "explicit_employment", 1.0),
        (f"employee at {company}", "explicit_employment", 1.0),
        (f"{company} employee", "explicit_employment", 1.0),
        (f"director at {company}", "explicit_employment", 0.95),
        (f"ceo at {company}", "explicit_employment", 0.95),
        (f"founder of {company}", "explicit_employment", 0.95),
        (f"manager at {company}", "explicit_employment", 0.9),
        (f"owner of {company}", "explicit_employment", 0.9),
        (f"at {company}", "title_match", 0.7),
        (f"bij {company}", "title_match", 0.7),
        (company, "company_mention", 0.4),
    ]

    evidence: list[str] = []
    best: Optional[tuple[str, float]] = None
    for pattern, match_type, weight in patterns:
        if re.search(pattern, text):
            evidence.append(f"Matched pattern: {pattern}")
            if best is None or weight > best[1]:
                best = (match_type, weight)

    if best is None:
        return EmploymentVerification(evidence=["No employment patterns matched"])

    match_type, weight = best
    return EmploymentVerification(
        is_verified=weight >= 0.7,
        confidence=weight,
        match_type=match_type,
        evidence=evidence,
    )


def determine_role(job_title: Optional[str]) -> str:
    """decision_maker, manager, team_member or unknown, from a job title."""
    if not job_title:
        return "unknown"
    if DECISION_MAKER_TITLE.search(job_title):
        return "decision_maker"
    if MANAGER_TITLE.search(job_title):
        return "manager"
    if TEAM_TITLE.search(job_title):
        return "team_member"
    return "unknown"


def extract_company_candidates(content: str) -> tuple[list[tuple[str, int]], Optional[str]]:
    """
    Company-name candidates and a KvK number found in page text.

    Returns:
        Tuple of ([(name, count)] in first-seen order, kvk number or None).
    """
    counts: dict[str, int] = {}
    names: dict[str, str] = {}
    kvk_number = None

    for pattern in COMPANY_PATTERNS:
        for match in pattern.finditer(content):
            extracted = (match.group(1) or "").strip()
            if not extracted:
                continue
            if KVK_NUMBER.match(extracted):
                kvk_number = extracted
            elif 3 < len(extracted) < 80:
                key = extracted.lower()
                names.setdefault(key, extracted)
                counts[key] = counts.get(key, 0) + 1

    return [(names[key], count) for key, count in counts.items()], kvk_number


def company_confidence(match_count: int, has_kvk: bool) -> float:
    """min(0.9, 0.3 + 0.15 * count), plus 0.2 (capped at 1) with a KvK number."""
    confidence = min(0.9, 0.3 + match_count * 0.15)
    if has_kvk:
        confidence = min(1.0, confidence + 0.2)
    return confidence


def linkedin_people_confidence(connections: list[LinkedInConnection]) -> float:
    if not connections:
        return 0.0
    verified = sum(1 for c in connections if c.employment_verified)
    decision_makers = sum(1 for c in connections if c.role == "decision_maker")
    return min(0.95, 0.2 + verified * 0.15 + decision_makers * 0.1 + len(connections) * 0.05)


def news_confidence(article_count: int) -> float:
    return min(0.9, 0.3 + article_count * 0.12) if article_count else 0.0


def calendar_confidence(found: int, current: int) -> float:
    return min(0.9, 0.3 + found * 0.15 + current * 0.1) if found else 0.0


def overall_confidence(state: ResearchState) -> float:
    """Weighted sum: company 0.25, LinkedIn 0.35, news 0.15, calendars 0.25."""
    linkedin_results_confidence = state.linked_in_results.confidence if state.linked_in_results else 0.0
    linkedin = min(
        0.95,
        linkedin_results_confidence * 0.4
        + (0.3 if state.verified_count > 0 else 0.0)
        + (0.2 if state.decision_maker_count > 0 else 0.0)
        + (0.15 if state.company_linked_in else 0.0),
    )
    company = state.organizing_company.confidence if state.organizing_company else 0.0
    news = state.news_results.confidence if state.news_results else 0.0
    calendar = state.calendar_results.confidence if state.calendar_results else 0.0
    return company * 0.25 + linkedin * 0.35 + news * 0.15 + calendar * 0.25


def quality_score(state: ResearchState) -> QualityScore:
    """Percent scores for company discovery, LinkedIn coverage and completeness."""
    has_company = bool(state.organizing_company and state.organizing_company.name)
    company_score = state.organizing_company.confidence if has_company else 0.0
    linkedin_score = min(
        1.0,
        state.verified_count * 0.2 + state.decision_maker_count * 0.15 + (0.2 if state.company_linked_in else 0.0),
    )
    completeness = sum(
        [bool(state.discovered_homepage), has_company, bool(state.company_linked_in), state.verified_count > 0]
    ) / 4
    overall = company_score * 0.3 + linkedin_score * 0.4 + completeness * 0.3
    return QualityScore(
        overall=round(overall * 100),
        company_discovery=round(company_score * 100),
        linkedin_connections=round(linkedin_score * 100),
        data_completeness=round(completeness * 100),
    )


def _result_url(item: dict[str, Any]) -> Optional[str]:
    return item.get("url") or item.get("link")


def _page_text(item: Optional[dict[str, Any]]) -> str:
    if not item:
        return ""
    return item.get("markdown") or item.get("text") or ""


# ---- orchestrator ----


class ResearchOrchestrator:
    """
    Runs the research pipeline for one festival at a time.

    Usage:
        orchestrator = ResearchOrchestrator(OrchestratorOptions(parallel_execution=False))
        state = orchestrator.run_research("42", "Lowlands")
        print(state.overall_confidence, state.confidence_level)
    """

    def __init__(
        self,
        options: Optional[OrchestratorOptions] = None,
        apify: Optional[ResilientApifyClient] = None,
        ai: Optional[AIValidationService] = None,
        on_progress: Optional[Callable[[ResearchState], None]] = None,
    ):
        self.options = options or OrchestratorOptions()
        self.apify = apify or ResilientApifyClient()
        self.ai = ai or AIValidationService()
        self.on_progress = on_progress
        self.state: Optional[ResearchState] = None
        self._lock = threading.RLock()

    @property
    def _use_ai(self) -> bool:
        return self.options.enable_ai_validation and self.ai.is_available()

    # ---- state bookkeeping ----

    def _update(self, **changes: Any) -> None:
        with self._lock:
            for key, value in changes.items():
                setattr(self.state, key, value)
            self.state.last_updated_at = _now()
            if self.on_progress:
                self.on_progress(self.state)

    def _warn(self, phase: str, message: str) -> None:
        with self._lock:
            self.state.warnings.append(ResearchIssue(phase=phase, message=message))

    def _error(self, phase: str, message: str) -> None:
        with self._lock:
            self.state.errors.append(ResearchIssue(phase=phase, message=message))

    def _guarded(self, phase: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except Exception as e:
            logger.error("[Orchestrator] %s failed: %s", phase, e)
            self._error(phase, str(e))
            return None

    # ---- phases ----

    def discover_website(self) -> Optional[str]:
        self._update(phase=ResearchPhase.DISCOVERING_WEBSITE)

        if self.state.festival_url:
            logger.info("[Orchestrator] Using provided festival URL")
            return self.state.festival_url

        logger.info("[Orchestrator] Searching for festival website...")
        results = self.apify.google_search(f'"{self.state.festival_name}" festival official website')

        if not results:
            self._warn("discoverWebsite", "Could not find festival website via search")
            if self.options.fallback_to_basic_search:
                fallback = self.apify.run_actor(
                    RAG_WEB_BROWSER_ACTOR,
                    {
                        "query": f"{self.state.festival_name} festival official site",
                        "maxResults": 3,
                        "outputFormats": ["markdown"],
                    },
                    max_retries=1,
                )
                if fallback.success and fallback.data:
                    first = fallback.data[0]
                    return first.get("url") or (first.get("crawl") or {}).get("requestUrl")
            return None

        for item in results:
            url = _result_url(item)
            if url and not any(pattern.search(url) for pattern in EXCLUDED_HOMEPAGE_PATTERNS):
                return url
        return None

    def extract_company(self, website_url: str) -> None:
        self._update(phase=ResearchPhase.EXTRACTING_COMPANY)
        logger.info("[Orchestrator] Extracting company info from website...")

        parsed = urlparse(website_url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        pages = [website_url, f"{origin}/privacy", f"{origin}/contact"]

        counts: dict[str, int] = {}
        names: dict[str, str] = {}
        sources: dict[str, str] = {}
        kvk_number = None

        for url in pages:
            content = _page_text(self.apify.fetch_page(url))
            if not content:
                continue
            candidates, kvk = extract_company_candidates(content)
            kvk_number = kvk or kvk_number
            for name, count in candidates:
                key = name.lower()
                names.setdefault(key, name)
                sources.setdefault(key, url)
                counts[key] = counts.get(key, 0) + count

        if not counts:
            self._warn("extractCompany", "No company information found on website")
            self._update(organizing_company=OrganizingCompany())
            return

        best_key = max(counts, key=lambda key: counts[key])
        best_name = names[best_key]
        confidence = company_confidence(counts[best_key], bool(kvk_number))

        validation = None
        if self._use_ai:
            validation = self.ai.validate_company_name(self.state.festival_name, best_name, sources[best_key])
            if validation.is_valid:
                confidence = max(confidence, validation.confidence)
            else:
                confidence = min(confidence, 0.3)
                self._warn("extractCompany", f'AI flagged company "{best_name}" as potentially invalid')

        self._update(
            organizing_company=OrganizingCompany(
                name=(validation.normalized_name if validation else None) or best_name,
                confidence=confidence,
                kvk_number=kvk_number,
                validated=validation is not None,
                validation_result=validation,
            )
        )

    def search_linkedin_company(self) -> None:
        self._update(phase=ResearchPhase.SEARCHING_LINKEDIN_COMPANY)
        logger.info("[Orchestrator] Searching LinkedIn for company page...")

        festival_name = self.state.festival_name
        company_name = self.state.organizing_company.name if self.state.organizing_company else None

        queries = []
        if company_name:
            queries.append(f'site:linkedin.com/company "{company_name}"')
        queries.append(f'site:linkedin.com/company "{festival_name}"')

        for query in queries:
            for item in self.apify.google_search(query):
                linkedin_url = validate_linkedin_url(_result_url(item) or "", "company")
                if not linkedin_url.is_valid or not linkedin_url.matches_expected:
                    continue
                url = linkedin_url.standardized_url
                title = re.sub(r": Overview$", "", re.sub(r" \| LinkedIn$", "", item.get("title") or ""))
                self._update(
                    company_linked_in=CompanyLinkedIn(
                        url=url,
                        name=title or company_name or festival_name,
                        description=item.get("snippet") or item.get("description"),
                        verified=True,
                    )
                )
                logger.info("[Orchestrator] Found company LinkedIn page: %s", url)
                return

        self._warn("searchLinkedInCompany", "No company LinkedIn page found")

    def _linkedin_hits(self, query: str, results_per_page: int, seen: set[str]):
        for item in self.apify.google_search(query, results_per_page=results_per_page):
            linkedin_url = validate_linkedin_url(_result_url(item) or "", "person")
            url = linkedin_url.standardized_url
            if not linkedin_url.matches_expected or not url or url in seen:
                continue
            seen.add(url)
            name, job_title = split_profile_title(item.get("title") or "")
            if name:
                yield item, url, name, job_title

    def _accept(self, connection: LinkedInConnection, company_name: Optional[str], min_confidence: float) -> bool:
        if not self._use_ai:
            return True
        validation = self.ai.validate_linkedin_person(
            self.state.festival_name, connection.name, connection.title, None, company_name
        )
        connection.validated = True
        connection.validation = validation
        return validation.is_relevant and validation.confidence >= min_confidence

    def search_linkedin_employees(self) -> None:
        self._update(phase=ResearchPhase.SEARCHING_LINKEDIN_EMPLOYEES)
        logger.info("[Orchestrator] Searching LinkedIn for company employees...")

        festival_name = self.state.festival_name
        company_name = self.state.organizing_company.name if self.state.organizing_company else None
        connections: list[LinkedInConnection] = []
        seen: set[str] = set()

        if company_name:
            company_queries = [
                f'site:linkedin.com/in "works at {company_name}"',
                f'site:linkedin.com/in "at {company_name}" director OR CEO OR founder OR manager',
                f'site:linkedin.com/in "{company_name}" festival OR event director OR manager',
            ]
            for query in company_queries:
                for item, url, name, job_title in self._linkedin_hits(query, 10, seen):
                    verification = verify_employment(
                        item.get("title") or "", item.get("snippet") or item.get("description") or "", company_name
                    )
                    if not verification.is_verified:
                        continue
                    connection = LinkedInConnection(
                        name=name,
                        title=job_title,
                        url=url,
                        company=company_name,
                        role=determine_role(job_title),
                        employment_verified=True,
                        verification=verification,
                        discovered_via="company_employee_search",
                    )
                    if self._accept(connection, company_name, 0.4):
                        connections.append(connection)

        festival_queries = [
            f'site:linkedin.com/in "{festival_name}" organizer OR director OR founder OR producer',
            f'site:linkedin.com/in "{festival_name}" festival manager OR event manager',
        ]
        for query in festival_queries:
            for item, url, name, job_title in self._linkedin_hits(query, 8, seen):
                verification = None
                if company_name:
                    verification = verify_employment(
                        item.get("title") or "", item.get("snippet") or item.get("description") or "", company_name
                    )
                connection = LinkedInConnection(
                    name=name,
                    title=job_title,
                    url=url,
                    company=company_name,
                    role=determine_role(job_title),
                    employment_verified=bool(verification and verification.is_verified),
                    verification=verification,
                    discovered_via="festival_search",
                )
                if self._accept(connection, company_name, 0.3):
                    connections.append(connection)

        connections.sort(key=lambda c: (not c.employment_verified, ROLE_ORDER[c.role]))
        confidence = linkedin_people_confidence(connections)
        top = connections[:MAX_CONNECTIONS]

        self._update(
            linked_in_connections=top,
            linked_in_results=LinkedInResults(
                people=[
                    LinkedInPerson(
                        name=c.name,
                        title=c.title,
                        url=c.url,
                        company=c.company,
                        validated=c.validated,
                        validation=c.validation,
                    )
                    for c in top
                ],
                searched_with=f"Company: {company_name}" if company_name else f"Festival: {festival_name}",
                confidence=confidence,
            ),
        )

        verified = sum(1 for c in connections if c.employment_verified)
        logger.info(
            "[Orchestrator] Found %d LinkedIn connections (%d verified employees)", len(connections), verified
        )
        if not connections:
            self._warn("searchLinkedInEmployees", "No relevant LinkedIn profiles found")

    def fetch_news(self) -> None:
        self._update(phase=ResearchPhase.FETCHING_NEWS)
        logger.info("[Orchestrator] Fetching news articles...")

        festival_name = self.state.festival_name
        company_name = self.state.organizing_company.name if self.state.organizing_company else None
        year = datetime.now().year

        query = f'"{festival_name}" festival {year} news OR review'
        if company_name:
            query = f'("{festival_name}" OR "{company_name}") festival {year} news OR review OR organisator'

        results = self.apify.google_search(query, results_per_page=10)
        news_items = [
            item for item in results
            if not any(domain in (_result_url(item) or "") for domain in SOCIAL_DOMAINS)
        ][:MAX_NEWS_ARTICLES]

        articles: list[NewsArticle] = []
        for item in news_items:
            url = _result_url(item)
            if not url:
                continue
            article = NewsArticle(
                title=item.get("title") or "Untitled",
                url=url,
                source=urlparse(url).netloc.replace("www.", ""),
            )

            content = _page_text(self.apify.fetch_page(url))
            if content:
                if self._use_ai:
                    validation = self.ai.validate_content(festival_name, content, "news")
                    article.validated = True
                    article.validation = validation
                    article.summary = validation.summary
                    date_match = ARTICLE_DATE.search(content)
                    if date_match:
                        article.date = date_match.group(1)
                else:
                    article.summary = content[:200].strip() + "..."

            articles.append(article)

        self._update(news_results=NewsResults(articles=articles, confidence=news_confidence(len(articles))))
        if not articles:
            self._warn("fetchNews", "No news articles found")

    def verify_calendars(self) -> None:
        self._update(phase=ResearchPhase.VERIFYING_CALENDARS)
        logger.info("[Orchestrator] Verifying calendar sources...")

        festival_name = self.state.festival_name
        year = datetime.now().year
        sources: list[CalendarSource] = []

        for calendar in CALENDAR_SOURCES:
            search_url = calendar["search_url"] + quote(festival_name, safe="")
            source = CalendarSource(name=calendar["name"])

            content = _page_text(self.apify.fetch_page(search_url))
            if content and festival_name.lower() in content.lower():
                source.found = True
                source.url = search_url
                years = [int(value) for value in EDITION_YEAR.findall(content)]
                if years:
                    source.edition_year = max(years)
                    source.is_current = source.edition_year >= year

            sources.append(source)

        found = sum(1 for source in sources if source.found)
        current = sum(1 for source in sources if source.is_current)
        self._update(
            calendar_results=CalendarResults(sources=sources, confidence=calendar_confidence(found, current))
        )
        if not found:
            self._warn("verifyCalendars", "Festival not found on any calendar sites")

    def score_results(self) -> None:
        self._update(phase=ResearchPhase.VALIDATING_RESULTS)
        overall = overall_confidence(self.state)
        self._update(overall_confidence=overall, confidence_level=confidence_level(overall))
        self._update(quality_score=quality_score(self.state))
        self._update(ai_assessment=self._assess())

    def _assess(self) -> ConfidenceScore:
        state = self.state
        company_found = bool(state.organizing_company and state.organizing_company.name)
        linkedin_profiles = len(state.linked_in_connections)
        news_articles = len(state.news_results.articles) if state.news_results else 0
        calendar_sources = (
            sum(1 for source in state.calendar_results.sources if source.found) if state.calendar_results else 0
        )
        has_website = bool(state.discovered_homepage or state.festival_url)

        if self._use_ai:
            return self.ai.generate_confidence_score(
                state.festival_name, company_found, linkedin_profiles, news_articles, calendar_sources, has_website
            )
        return heuristic_confidence_score(company_found, linkedin_profiles, news_articles, calendar_sources, has_website)

    def _check_retry(self) -> None:
        state = self.state
        if state.overall_confidence >= self.options.min_confidence_to_pass:
            return
        if state.attempts >= self.options.max_retries or not self.ai.is_available():
            return

        logger.info("[Orchestrator] Low confidence, asking for a retry strategy...")
        strategy = self.ai.suggest_retry_strategy(
            state.festival_name,
            {
                "company": state.organizing_company.model_dump(by_alias=True) if state.organizing_company else None,
                "linkedin": state.linked_in_results.model_dump(by_alias=True) if state.linked_in_results else None,
                "news": state.news_results.model_dump(by_alias=True) if state.news_results else None,
                "calendar": state.calendar_results.model_dump(by_alias=True) if state.calendar_results else None,
            },
            [error.phase for error in state.errors],
        )
        if strategy.should_retry:
            suggestion = strategy.strategies[0].suggestion if strategy.strategies else "default"
            self._warn("orchestrator", f"Retrying based on AI suggestion: {suggestion}")
            self._update(attempts=state.attempts + 1)

    # ---- run ----

    def run_research(self, festival_id: str, festival_name: str, festival_url: Optional[str] = None) -> ResearchState:
        """
        Run every research phase for one festival.

        Never raises: unexpected failures are recorded in ``state.errors`` and
        the state ends in the FAILED phase.

        Args:
            festival_id: Row id in the festivals table.
            festival_name: Name used in all search queries.
            festival_url: Known homepage; skips website discovery.

        Returns:
            Final ResearchState.
        """
        logger.info("[Orchestrator] Starting research for: %s", festival_name)
        self.state = ResearchState(festival_id=festival_id, festival_name=festival_name, festival_url=festival_url)
        self._update(attempts=1)

        try:
            website = self._guarded("discoverWebsite", self.discover_website)
            if website:
                self._update(discovered_homepage=website)
                self._guarded("extractCompany", self.extract_company, website)

            self._guarded("searchLinkedInCompany", self.search_linkedin_company)
            self._guarded("searchLinkedInEmployees", self.search_linkedin_employees)

            if self.options.parallel_execution:
                with ThreadPoolExecutor(max_workers=2) as executor:
                    futures = [
                        executor.submit(self._guarded, "fetchNews", self.fetch_news),
                        executor.submit(self._guarded, "verifyCalendars", self.verify_calendars),
                    ]
                    for future in futures:
                        future.result()
            else:
                self._guarded("fetchNews", self.fetch_news)
                self._guarded("verifyCalendars", self.verify_calendars)

            self.score_results()
            self._check_retry()
            self._update(phase=ResearchPhase.COMPLETED)
            logger.info(
                "[Orchestrator] Research completed. Quality score: %d%%",
                self.state.quality_score.overall if self.state.quality_score else 0,
            )
        except Exception as e:
            logger.error("[Orchestrator] Research failed: %s", e)
            self._error("orchestrator", str(e))
            self._update(phase=ResearchPhase.FAILED)

        return self.state
