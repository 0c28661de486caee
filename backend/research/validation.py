"""
AI Validation Service

Uses an OpenAI-compatible chat API (Perplexity when PERPLEXITY_API_KEY is set,
otherwise OpenAI) to:
- validate extracted company names and LinkedIn profiles
- summarize and score scraped content
- score research completeness and suggest retries

Every method returns a conservative default when the API is unavailable or
the answer cannot be parsed.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scraper.logging_utils import get_logger

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"
DEFAULT_PERPLEXITY_MODEL = "sonar"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

JSON_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class CompanyValidation(BaseModel):
    is_valid: bool = Field(False, alias="isValid")
    confidence: float = Field(0.0, ge=0, le=1)
    normalized_name: Optional[str] = Field(None, alias="normalizedName")
    company_type: Optional[Literal["bv", "nv", "stichting", "vof", "unknown"]] = Field(None, alias="companyType")
    reasoning: str = ""
    suggested_corrections: list[str] = Field(default_factory=list, alias="suggestedCorrections")

    model_config = ConfigDict(populate_by_name=True)


class PersonValidation(BaseModel):
    is_relevant: bool = Field(False, alias="isRelevant")
    confidence: float = Field(0.0, ge=0, le=1)
    role: Optional[str] = None
    is_decision_maker: bool = Field(False, alias="isDecisionMaker")
    reasoning: str = ""

    model_config = ConfigDict(populate_by_name=True)


class ContentValidation(BaseModel):
    is_relevant: bool = Field(False, alias="isRelevant")
    confidence: float = Field(0.0, ge=0, le=1)
    quality: Literal["high", "medium", "low"] = "low"
    summary: str = ""
    key_facts: list[str] = Field(default_factory=list, alias="keyFacts")
    reasoning: str = ""

    model_config = ConfigDict(populate_by_name=True)


class ConfidenceScore(BaseModel):
    score: float = 0.0
    level: Literal["high", "medium", "low"] = "low"
    reasoning: str = ""


class RetryStep(BaseModel):
    operation: str
    suggestion: str


class RetryStrategy(BaseModel):
    should_retry: bool = Field(False, alias="shouldRetry")
    strategies: list[RetryStep] = Field(default_factory=list)
    alternative_approaches: list[str] = Field(default_factory=list, alias="alternativeApproaches")

    model_config = ConfigDict(populate_by_name=True)


def confidence_level(score: float) -> str:
    """high >= 0.7, medium >= 0.4, else low."""
    if score >= 0.7:
        return "high"
    if score >= 0.4:
        return "medium"
    return "low"


def heuristic_confidence_score(
    company_found: bool,
    linkedin_profiles: int,
    news_articles: int,
    calendar_sources: int,
    has_website: bool,
) -> ConfidenceScore:
    """Weighted completeness score: company 0.3, LinkedIn 0.2, news 0.2, calendars 0.15, website 0.15."""
    score = 0.0
    if company_found:
        score += 0.3
    if linkedin_profiles > 0:
        score += 0.2
    if news_articles > 0:
        score += 0.2
    if calendar_sources > 0:
        score += 0.15
    if has_website:
        score += 0.15
    return ConfidenceScore(
        score=round(score, 4),
        level=confidence_level(score),
        reasoning="Basic heuristic calculation (AI unavailable)",
    )


def parse_json_response(raw: Optional[str], model: Type[T]) -> Optional[T]:
    """
    Parse a model out of an LLM answer.

    Accepts bare JSON or JSON inside a ```json fenced block.
    Returns None when the answer is missing or does not validate.
    """
    if not raw:
        return None
    fenced = JSON_FENCE.search(raw)
    payload = fenced.group(1) if fenced else raw.strip()
    try:
        return model.model_validate(json.loads(payload))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("[AI Validation] Failed to parse response: %s", e)
        return None


def _build_client() -> tuple[Any, Optional[str]]:
    from openai import OpenAI

    perplexity_key = os.getenv("PERPLEXITY_API_KEY")
    if perplexity_key:
        return OpenAI(api_key=perplexity_key, base_url=PERPLEXITY_BASE_URL), DEFAULT_PERPLEXITY_MODEL

    openai_key = os.getenv("OPENAI_API_KEY")
    if openai_key:
        return OpenAI(api_key=openai_key), DEFAULT_OPENAI_MODEL

    logger.warning("[AI Validation] Neither PERPLEXITY_API_KEY nor OPENAI_API_KEY configured")
    return None, None


class AIValidationService:
    """LLM-backed checks for research results."""

    def __init__(self, client: Any = None, model: Optional[str] = None):
        """
        Args:
            client: OpenAI client (or compatible). Built from the environment if omitted.
            model: Chat model name, defaults to LLM_MODEL or the provider default.
        """
        default_model = None
        if client is None:
            client, default_model = _build_client()
        self.client = client
        self.model = model or os.getenv("LLM_MODEL") or default_model or DEFAULT_OPENAI_MODEL

    def is_available(self) -> bool:
        return self.client is not None

    def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int = 1024) -> Optional[str]:
        if self.client is None:
            return None
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                temperature=0.1,
            )
            return (response.choices[0].message.content or "").strip()
        except Exception as e:
            logger.error("[AI Validation] Chat API error: %s", e)
            return None

    def validate_company_name(
        self,
        festival_name: str,
        extracted_company: Optional[str],
        source_url: str,
        source_content: Optional[str] = None,
    ) -> CompanyValidation:
        """Check whether an extracted company plausibly organizes the festival."""
        default = CompanyValidation(reasoning="AI validation unavailable")
        if self.client is None or not extracted_company:
            return default

        system_prompt = """You are an expert at validating company information for Dutch festivals.
Your task is to validate if an extracted company name is legitimate and actually organizes the given festival.

Response format (JSON only):
{
  "isValid": boolean,
  "confidence": number (0-1),
  "normalizedName": string or null,
  "companyType": "bv" | "nv" | "stichting" | "vof" | "unknown" | null,
  "reasoning": string,
  "suggestedCorrections": string[] (optional)
}"""
        excerpt = f"Source Content (excerpt): {source_content[:1000]}" if source_content else ""
        user_prompt = f"""Festival: {festival_name}
Extracted Company: {extracted_company}
Source URL: {source_url}
{excerpt}

Validate this company extraction. Consider:
1. Does the company name make sense for organizing a festival?
2. Does it follow Dutch company naming conventions (B.V., N.V., Stichting, etc.)?
3. Is it likely to be the actual organizer vs. a sponsor or partner?
4. What is your confidence level in this extraction?"""

        return parse_json_response(self._complete(system_prompt, user_prompt), CompanyValidation) or default

    def validate_linkedin_person(
        self,
        festival_name: str,
        person_name: str,
        person_title: Optional[str],
        person_company: Optional[str],
        organizing_company: Optional[str],
    ) -> PersonValidation:
        """Judge whether a LinkedIn profile belongs to someone who runs the festival."""
        default = PersonValidation(reasoning="AI validation unavailable")
        if self.client is None:
            return default

        system_prompt = """You are an expert at identifying key people involved in festival organization.
Determine if a LinkedIn profile is relevant to the festival and likely to be a decision-maker.

Response format (JSON only):
{
  "isRelevant": boolean,
  "confidence": number (0-1),
  "role": string or null (e.g., "organizer", "marketing", "founder", "production"),
  "isDecisionMaker": boolean,
  "reasoning": string
}"""
        company_line = f"Organizing Company: {organizing_company}" if organizing_company else ""
        user_prompt = f"""Festival: {festival_name}
{company_line}

LinkedIn Profile:
- Name: {person_name}
- Title: {person_title or 'Unknown'}
- Company: {person_company or 'Unknown'}

Evaluate if this person is:
1. Actually connected to this festival/company
2. In a position to make decisions about sponsorships, partnerships, bookings
3. Relevant for business development purposes"""

        return parse_json_response(self._complete(system_prompt, user_prompt), PersonValidation) or default

    def validate_content(self, festival_name: str, content: str, content_type: str) -> ContentValidation:
        """Relevance, quality and a short summary of scraped content ("news", "website", "calendar")."""
        default = ContentValidation(reasoning="AI validation unavailable")
        if self.client is None or not content:
            return default

        system_prompt = """You are an expert at analyzing content about music festivals.
Evaluate if content is relevant, extract key information, and assess quality.

Response format (JSON only):
{
  "isRelevant": boolean,
  "confidence": number (0-1),
  "quality": "high" | "medium" | "low",
  "summary": string (2-3 sentences),
  "keyFacts": string[] (max 5 facts),
  "reasoning": string
}"""
        user_prompt = f"""Festival: {festival_name}
Content Type: {content_type}
Content:
{content[:3000]}

Analyze this content for:
1. Is it actually about the festival (not just mentioning it)?
2. Is the information current and accurate?
3. What are the key facts (dates, location, lineup, status)?
4. Is this high-quality source content?"""

        return parse_json_response(self._complete(system_prompt, user_prompt), ContentValidation) or default

    def generate_confidence_score(
        self,
        festival_name: str,
        company_found: bool,
        linkedin_profiles: int,
        news_articles: int,
        calendar_sources: int,
        has_website: bool,
    ) -> ConfidenceScore:
        """
        Score research completeness.

        Without an API client this falls back to heuristic_confidence_score.
        """
        if self.client is None:
            return heuristic_confidence_score(
                company_found, linkedin_profiles, news_articles, calendar_sources, has_website
            )

        system_prompt = """You are evaluating the completeness and reliability of research about a festival.
Calculate a confidence score based on what information was found.

Response format (JSON only):
{
  "score": number (0-1),
  "level": "high" | "medium" | "low",
  "reasoning": string
}"""
        user_prompt = f"""Festival: {festival_name}

Research Results:
- Organizing company found: {company_found}
- LinkedIn profiles found: {linkedin_profiles}
- News articles found: {news_articles}
- Calendar sources confirming: {calendar_sources}
- Website available: {has_website}

Generate a confidence score considering:
1. How complete is the research?
2. Can we trust the festival is legitimate and active?
3. Do we have enough information for business outreach?"""

        parsed = parse_json_response(self._complete(system_prompt, user_prompt), ConfidenceScore)
        return parsed or ConfidenceScore(reasoning="Unable to calculate confidence")

    def suggest_retry_strategy(
        self,
        festival_name: str,
        current_results: dict[str, Any],
        failed_operations: list[str],
    ) -> RetryStrategy:
        """Ask whether (and how) failed research phases should be retried."""
        default = RetryStrategy(
            should_retry=bool(failed_operations),
            strategies=[
                RetryStep(operation=operation, suggestion="Retry with default parameters")
                for operation in failed_operations
            ],
        )
        if self.client is None:
            return default

        system_prompt = """You are a research strategy advisor for festival data collection.
Based on current results and failures, suggest retry strategies and alternatives.

Response format (JSON only):
{
  "shouldRetry": boolean,
  "strategies": [{"operation": string, "suggestion": string}],
  "alternativeApproaches": string[]
}"""
        user_prompt = f"""Festival: {festival_name}

Current Results: {json.dumps(current_results, indent=2, default=str)}

Failed Operations: {', '.join(failed_operations)}

Suggest:
1. Should we retry failed operations? If so, how?
2. What alternative approaches could yield better results?
3. Are there different search terms or strategies to try?"""

        return parse_json_response(self._complete(system_prompt, user_prompt), RetryStrategy) or default
