"""
Database module for festifind Backend

Supabase access for the `festivals` table. Research results are written as a
JSON blob on the festival row; the last write wins.
"""

import os
from datetime import datetime, timezone
from typing import Any, Optional

from research.orchestrator import ResearchState
from scraper.logging_utils import get_logger

FESTIVALS_TABLE = "festivals"

logger = get_logger(__name__)


def get_supabase_settings() -> tuple[Optional[str], Optional[str]]:
    """Supabase URL and anon key from the environment."""
    return os.getenv("NEXT_PUBLIC_SUPABASE_URL"), os.getenv("NEXT_PUBLIC_SUPABASE_ANON_KEY")


def is_configured() -> bool:
    url, key = get_supabase_settings()
    return bool(url and key)


def get_client():
    """
    Create a Supabase client.

    Raises:
        RuntimeError: If NEXT_PUBLIC_SUPABASE_URL or NEXT_PUBLIC_SUPABASE_ANON_KEY is missing.
    """
    from supabase import create_client

    url, key = get_supabase_settings()
    if not url or not key:
        raise RuntimeError("Supabase is not configured (NEXT_PUBLIC_SUPABASE_URL / NEXT_PUBLIC_SUPABASE_ANON_KEY)")
    return create_client(url, key)


# ============ Festival Operations ============

def get_festival(festival_id: str, client=None) -> Optional[dict]:
    """Get festival row by ID."""
    client = client or get_client()
    response = client.table(FESTIVALS_TABLE).select("*").eq("id", festival_id).limit(1).execute()
    rows = response.data or []
    return rows[0] if rows else None


def build_research_update(state: ResearchState, verified_at: Optional[datetime] = None) -> dict[str, Any]:
    """
    Row update for a finished research run.

    `research_data` holds the full result; `homepage_url` and
    `organizing_company` are only set when something was found.
    """
    def dump(model):
        return model.model_dump(by_alias=True, mode="json") if model is not None else None

    verified_at = verified_at or datetime.now(timezone.utc)
    update: dict[str, Any] = {
        "research_data": {
            "company": dump(state.organizing_company),
            "companyLinkedIn": dump(state.company_linked_in),
            "linkedin": dump(state.linked_in_results),
            "news": dump(state.news_results),
            "calendar": dump(state.calendar_results),
            "qualityScore": dump(state.quality_score),
            "aiAssessment": dump(state.ai_assessment),
            "confidence": {
                "overall": state.overall_confidence,
                "level": state.confidence_level,
            },
            "meta": {
                "startedAt": state.started_at,
                "completedAt": state.last_updated_at,
                "phase": state.phase.value,
                "attempts": state.attempts,
                "errors": [dump(error) for error in state.errors],
                "warnings": [dump(warning) for warning in state.warnings],
            },
        },
        "last_verified": verified_at.isoformat(),
    }

    if state.discovered_homepage:
        update["homepage_url"] = state.discovered_homepage
    if state.organizing_company and state.organizing_company.name:
        update["organizing_company"] = state.organizing_company.name

    return update


def save_research_result(state: ResearchState, client=None) -> bool:
    """
    Overwrite the research columns of a festival row.

    Returns:
        True when the update went through, False on any failure (logged).
    """
    try:
        client = client or get_client()
        client.table(FESTIVALS_TABLE).update(build_research_update(state)).eq("id", state.festival_id).execute()
    except Exception as e:
        logger.error("[Database] Failed to save research for festival %s: %s", state.festival_id, e)
        return False

    logger.info("[Database] Research saved for festival %s", state.festival_id)
    return True
