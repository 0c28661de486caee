"""
festifind Backend API

FastAPI application for the festival scrapers and the research orchestrator.
"""

import json
import math
import os
import queue
import threading
from typing import Any, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import Field, ValidationError, field_validator

import database as db
from research.orchestrator import OrchestratorOptions, ResearchOrchestrator, ResearchPhase, ResearchState
from scraper.config import eblive_config, festivalinfo_config, get_data_dir
from scraper.eblive import EBLiveScraper, analyze_scrape_results
from scraper.festivalinfo import FestivalInfoScraper
from scraper.models import CamelModel
from scraper.storage import cleanup_snapshots, find_latest_file, load_snapshot

# Load environment variables
load_dotenv()

# Initialize FastAPI
app = FastAPI(
    title="festifind API",
    description="Festival listing scrapers and festival research",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SCRAPERS = {
    "festivalinfo": (FestivalInfoScraper, festivalinfo_config),
    "eblive": (EBLiveScraper, eblive_config),
}
SEARCH_FIELDS = ("name", "location", "city", "country")


# ============ Pydantic Models for API ============


class ScrapeRunRequest(CamelModel):
    max_pages: Optional[int] = Field(None, ge=0)
    extract_detail_pages: Optional[bool] = None


class CleanupRequest(CamelModel):
    keep_count: int = Field(5, ge=0)


class ResearchRequestOptions(CamelModel):
    max_retries: Optional[int] = Field(None, ge=1, le=5)
    enable_ai_validation: Optional[bool] = Field(None, alias="enableAIValidation")
    parallel_execution: Optional[bool] = None


class ResearchRequest(CamelModel):
    festival_id: str = Field(..., min_length=1)
    festival_name: str = Field(..., min_length=1)
    festival_url: Optional[str] = None
    options: Optional[ResearchRequestOptions] = None

    @field_validator("festival_url")
    @classmethod
    def _check_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("festivalUrl must be an absolute http(s) URL")
        return value

    def orchestrator_options(self) -> OrchestratorOptions:
        options = self.options or ResearchRequestOptions()
        return OrchestratorOptions(
            max_retries=options.max_retries or 3,
            enable_ai_validation=True if options.enable_ai_validation is None else options.enable_ai_validation,
            parallel_execution=True if options.parallel_execution is None else options.parallel_execution,
            fallback_to_basic_search=True,
            min_confidence_to_pass=0.3,
        )


# ============ Helpers ============


def _service_status() -> dict[str, bool]:
    return {
        "apifyConfigured": bool(os.getenv("APIFY_API_TOKEN")),
        "perplexityConfigured": bool(os.getenv("PERPLEXITY_API_KEY")),
        "openaiConfigured": bool(os.getenv("OPENAI_API_KEY")),
        "anthropicConfigured": bool(os.getenv("ANTHROPIC_API_KEY")),
        "supabaseConfigured": bool(os.getenv("NEXT_PUBLIC_SUPABASE_URL")),
    }


def _get_scraper(source: str):
    scraper = SCRAPERS.get(source)
    if scraper is None:
        raise HTTPException(status_code=404, detail=f"Unknown scraper source '{source}'")
    return scraper


def _file_type(name: str) -> str:
    if "_mock_" in name:
        return "mock"
    if "_metrics_" in name:
        return "metrics"
    return "real"


def _matches_search(item: dict[str, Any], search: str) -> bool:
    for field in SEARCH_FIELDS:
        value = item.get(field)
        if isinstance(value, dict):
            value = " ".join(str(part) for part in value.values())
        if isinstance(value, str) and search in value.lower():
            return True
    return False


def _progress_event(state: ResearchState) -> dict[str, Any]:
    linkedin = state.linked_in_results
    news = state.news_results
    calendar = state.calendar_results
    return {
        "type": "progress",
        "phase": state.phase.value,
        "confidence": state.overall_confidence,
        "data": {
            "company": state.organizing_company.model_dump(by_alias=True, mode="json")
            if state.organizing_company else None,
            "linkedin": {"count": len(linkedin.people), "confidence": linkedin.confidence} if linkedin else None,
            "news": {"count": len(news.articles), "confidence": news.confidence} if news else None,
            "calendar": {
                "found": sum(1 for source in calendar.sources if source.found),
                "total": len(calendar.sources),
                "confidence": calendar.confidence,
            } if calendar else None,
        },
        "warnings": len(state.warnings),
        "errors": len(state.errors),
    }


def _complete_event(state: ResearchState, saved: bool) -> dict[str, Any]:
    result = state.model_dump(
        by_alias=True,
        mode="json",
        include={
            "phase", "festival_id", "discovered_homepage", "organizing_company", "company_linked_in",
            "linked_in_results", "news_results", "calendar_results", "quality_score",
            "overall_confidence", "confidence_level", "errors", "warnings",
        },
    )
    result["duration"] = {"startedAt": state.started_at, "completedAt": state.last_updated_at}
    return {
        "type": "complete",
        "success": state.phase == ResearchPhase.COMPLETED,
        "savedToDatabase": saved,
        "result": result,
    }


def _research_stream(payload: ResearchRequest):
    """Run the orchestrator in a worker thread and yield SSE frames as it progresses."""
    events: "queue.Queue[Optional[dict]]" = queue.Queue()

    def worker():
        try:
            orchestrator = ResearchOrchestrator(
                payload.orchestrator_options(),
                on_progress=lambda state: events.put(_progress_event(state)),
            )
            state = orchestrator.run_research(payload.festival_id, payload.festival_name, payload.festival_url)

            saved = False
            if db.is_configured():
                saved = db.save_research_result(state)
            else:
                print("[API] Supabase not configured, research result not saved")
            events.put(_complete_event(state, saved))
        except Exception as e:
            print(f"[API] Orchestrated research failed: {e}")
            events.put({"type": "error", "success": False, "error": str(e)})
        finally:
            events.put(None)

    threading.Thread(target=worker, daemon=True).start()

    while True:
        event = events.get()
        if event is None:
            break
        yield f"data: {json.dumps(event)}\n\n"


# ============ Startup ============


@app.on_event("startup")
async def startup():
    """Report data directory and configured services."""
    print(f"[API] Data directory: {get_data_dir()}")
    print(f"[API] Services: {_service_status()}")


# ============ Health Check ============


@app.get("/api/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "services": _service_status()}


# ============ Scraper Endpoints ============


@app.post("/api/scrapers/{source}/run")
def run_scraper(source: str, payload: Optional[ScrapeRunRequest] = None):
    """
    Run a listing scraper to completion.

    Declared sync so FastAPI runs the blocking browser session in its worker
    thread pool.
    """
    scraper_cls, config_factory = _get_scraper(source)
    payload = payload or ScrapeRunRequest()

    overrides: dict[str, Any] = {}
    if payload.max_pages is not None:
        overrides["max_pages"] = payload.max_pages
    if payload.extract_detail_pages is not None:
        overrides["extract_detail_pages"] = payload.extract_detail_pages
    config = config_factory(**overrides)

    print(f"[API] Starting {source} scraper with maxPages={config.max_pages}")
    with scraper_cls(config) as scraper:
        result, _ = scraper.run()

    body = result.model_dump(by_alias=True, mode="json")
    if source == "eblive" and result.success:
        body["analysis"] = analyze_scrape_results(result.metrics).model_dump(mode="json")

    if not result.success:
        return JSONResponse(status_code=500, content=body)
    return body


@app.get("/api/scrapers/{source}/data")
async def get_scraper_data(
    source: str,
    file: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=1000),
    search: str = "",
):
    """Latest (or a named) snapshot, filtered and paginated."""
    _get_scraper(source)
    data_dir = get_data_dir()

    if file:
        file_select_method = "explicit"
        path = (data_dir / file).resolve()
        if data_dir.resolve() not in path.parents or not path.is_file():
            return JSONResponse(
                status_code=404,
                content={"success": False, "error": f"File not found: {file}", "fileSelectMethod": file_select_method},
            )
        file_name = file
        file_type = _file_type(path.name)
    else:
        file_select_method = "automatic"
        latest = find_latest_file(data_dir, source) if data_dir.exists() else None
        if latest is None:
            return JSONResponse(
                status_code=404,
                content={
                    "success": False,
                    "error": "No festival data files found",
                    "fileSelectMethod": file_select_method,
                },
            )
        path = latest.path
        file_name = latest.relative_name
        file_type = latest.file_type

    try:
        festivals = load_snapshot(path)
    except (OSError, ValueError) as e:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e), "file": file_name, "fileSelectMethod": file_select_method},
        )

    if search:
        needle = search.lower()
        festivals = [item for item in festivals if isinstance(item, dict) and _matches_search(item, needle)]

    total = len(festivals)
    offset = (page - 1) * limit
    return {
        "success": True,
        "data": festivals[offset:offset + limit],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit),
        },
        "file": file_name,
        "fileSelectMethod": file_select_method,
        "fileType": file_type,
        "isMockData": file_type == "mock",
    }


@app.post("/api/scrapers/{source}/cleanup")
async def cleanup_scraper_data(source: str, payload: Optional[CleanupRequest] = None):
    """Keep the best `keepCount` snapshots of a source and delete the rest."""
    _get_scraper(source)
    payload = payload or CleanupRequest()
    data_dir = get_data_dir()

    if not data_dir.exists():
        raise HTTPException(status_code=404, detail=f"Data directory not found: {data_dir}")

    deleted, kept = cleanup_snapshots(data_dir, source, payload.keep_count)
    print(f"[API] Cleanup {source}: kept {len(kept)}, deleted {len(deleted)}")
    return {"success": True, "deleted": deleted, "kept": kept}


# ============ Research Endpoints ============


@app.post("/api/research/orchestrated")
async def orchestrated_research(request: Request):
    """Start research for one festival; progress is streamed as Server-Sent Events."""
    if not os.getenv("APIFY_API_TOKEN"):
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "error": "APIFY_API_TOKEN not configured",
                "message": "Research functionality requires Apify API access. Please configure your API token.",
            },
        )

    try:
        payload = ResearchRequest.model_validate(await request.json())
    except (ValidationError, json.JSONDecodeError) as e:
        details = e.errors(include_url=False) if isinstance(e, ValidationError) else [{"msg": str(e)}]
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid request data", "details": json.loads(json.dumps(details, default=str))},
        )

    print(f"[API] Orchestrated research for {payload.festival_name} ({payload.festival_id})")
    return StreamingResponse(
        _research_stream(payload),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@app.get("/api/research/orchestrated")
async def orchestrated_research_info():
    """Describe the research endpoint and report configured services."""
    return {
        "success": True,
        "message": "Orchestrated Research API",
        "description": "Use POST to start a research job with streaming progress updates",
        "endpoints": {
            "POST": {
                "description": "Start orchestrated research for a festival",
                "body": {
                    "festivalId": "string (required)",
                    "festivalName": "string (required)",
                    "festivalUrl": "string (optional)",
                    "options": {
                        "maxRetries": "number (1-5, default: 3)",
                        "enableAIValidation": "boolean (default: true)",
                        "parallelExecution": "boolean (default: true)",
                    },
                },
                "response": "Server-Sent Events stream with progress updates",
            },
        },
        "features": [
            "Automatic retries with exponential backoff",
            "Circuit breaker for Apify failures",
            "AI validation of results (requires PERPLEXITY_API_KEY or OPENAI_API_KEY)",
            "Confidence scoring",
            "Automatic database persistence",
            "Graceful degradation when services unavailable",
        ],
        "status": _service_status(),
    }


# ============ Main Entry Point ============


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
