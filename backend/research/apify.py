"""
Resilient Apify client

Wraps apify-client with:
- bounded retries with exponential backoff
- structured error types for memory/billing/rate limits and timeouts
- a circuit breaker that opens after repeated memory or billing failures
"""

from __future__ import annotations

import os
import random
import time
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from scraper.logging_utils import get_logger

GOOGLE_SEARCH_ACTOR = "apify/google-search-scraper"
RAG_WEB_BROWSER_ACTOR = "apify/rag-web-browser"

CIRCUIT_BREAKER_THRESHOLD = 3
CIRCUIT_BREAKER_RESET_SECONDS = 60.0
MAX_BACKOFF_MS = 30000

logger = get_logger(__name__)


class ApifyErrorType(str, Enum):
    MEMORY_LIMIT = "actor-memory-limit-exceeded"
    BILLING_LIMIT = "billing-limit-exceeded"
    RATE_LIMIT = "rate-limit-exceeded"
    TIMEOUT = "timeout"
    NOT_FOUND = "not-found"
    UNKNOWN = "unknown"


class ApifyError(BaseModel):
    type: ApifyErrorType
    message: str
    status_code: Optional[int] = None
    retryable: bool = False
    suggested_action: Optional[str] = None


class ActorRunResult(BaseModel):
    """Outcome of one (possibly retried) actor call."""
    success: bool
    data: list[dict[str, Any]] = Field(default_factory=list)
    error: Optional[ApifyError] = None
    attempts: int = 0
    duration_ms: int = 0


def parse_error(error: Exception) -> ApifyError:
    """
    Map an exception raised by apify-client to a structured error.

    Memory and billing limits are not retryable; rate limits, timeouts and
    5xx responses are.
    """
    message = getattr(error, "message", None) or str(error)
    status_code = getattr(error, "status_code", None) or getattr(error, "status", None)
    lowered = message.lower()

    if "memory-limit-exceeded" in lowered or "exceed the memory limit" in lowered or status_code == 402:
        return ApifyError(
            type=ApifyErrorType.MEMORY_LIMIT,
            message="Apify memory limit exceeded. Consider upgrading your plan.",
            status_code=402,
            retryable=False,
            suggested_action="Try with lower memory settings or wait for limits to reset",
        )

    if "billing" in lowered or "subscription" in lowered:
        return ApifyError(
            type=ApifyErrorType.BILLING_LIMIT,
            message="Apify billing limit reached",
            status_code=status_code,
            retryable=False,
            suggested_action="Check your Apify subscription at console.apify.com/billing",
        )

    if status_code == 429 or "rate limit" in lowered:
        return ApifyError(
            type=ApifyErrorType.RATE_LIMIT,
            message="Rate limit exceeded",
            status_code=429,
            retryable=True,
            suggested_action="Wait and retry",
        )

    if "timeout" in lowered or "timed out" in lowered or "etimedout" in lowered:
        return ApifyError(
            type=ApifyErrorType.TIMEOUT,
            message="Request timed out",
            retryable=True,
            suggested_action="Retry with longer timeout",
        )

    if status_code == 404:
        return ApifyError(type=ApifyErrorType.NOT_FOUND, message=message, status_code=404, retryable=False)

    return ApifyError(
        type=ApifyErrorType.UNKNOWN,
        message=message,
        status_code=status_code,
        retryable=bool(status_code and status_code >= 500),
    )


def backoff_delay_ms(attempt: int, base_ms: int = 1000) -> float:
    """min(base * 2^attempt + jitter(0-500), 30000) milliseconds."""
    jitter = random.random() * 500
    return min(base_ms * (2 ** attempt) + jitter, MAX_BACKOFF_MS)


class ResilientApifyClient:
    """
    Runs Apify actors and returns their dataset items.

    Usage:
        client = ResilientApifyClient()
        result = client.run_actor(GOOGLE_SEARCH_ACTOR, {"queries": "..."})
        if result.success:
            items = result.data
    """

    def __init__(
        self,
        token: Optional[str] = None,
        client: Any = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            token: Apify API token, defaults to APIFY_API_TOKEN.
            client: Pre-built ApifyClient (or a stand-in exposing actor()/dataset()).
            sleep: Sleep function used between retries.
            clock: Monotonic clock used by the circuit breaker.
        """
        self.token = token if token is not None else os.getenv("APIFY_API_TOKEN")
        self._sleep = sleep
        self._clock = clock
        self.client = client
        if self.client is None and self.token:
            from apify_client import ApifyClient

            self.client = ApifyClient(self.token, max_retries=2, min_delay_between_retries_millis=1000, timeout_secs=120)

        self._failures = 0
        self._last_failure = 0.0
        self._open = False

    def is_configured(self) -> bool:
        return self.client is not None

    # ---- circuit breaker ----

    def _should_block(self) -> bool:
        if not self._open:
            return False
        if self._clock() - self._last_failure > CIRCUIT_BREAKER_RESET_SECONDS:
            self.reset_circuit_breaker()
            return False
        return True

    def _record_failure(self, error: ApifyError) -> None:
        if error.type not in (ApifyErrorType.MEMORY_LIMIT, ApifyErrorType.BILLING_LIMIT):
            return
        self._failures += 1
        self._last_failure = self._clock()
        if self._failures >= CIRCUIT_BREAKER_THRESHOLD:
            self._open = True
            logger.warning("[Apify] Circuit breaker OPEN - too many failures")

    def circuit_breaker_status(self) -> dict[str, Any]:
        status: dict[str, Any] = {"isOpen": self._open, "failures": self._failures}
        if self._open:
            elapsed = self._clock() - self._last_failure
            status["resetIn"] = max(0.0, CIRCUIT_BREAKER_RESET_SECONDS - elapsed)
        return status

    def reset_circuit_breaker(self) -> None:
        self._failures = 0
        self._last_failure = 0.0
        self._open = False

    # ---- actor runs ----

    def run_actor(self, actor_id: str, run_input: dict[str, Any], max_retries: int = 2) -> ActorRunResult:
        """
        Run an actor and collect its default dataset.

        Never raises: failures come back as ``ActorRunResult(success=False)``.

        Args:
            actor_id: e.g. "apify/google-search-scraper".
            run_input: Actor input.
            max_retries: Total number of attempts.
        """
        started = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        if self._should_block():
            return ActorRunResult(
                success=False,
                error=ApifyError(
                    type=ApifyErrorType.MEMORY_LIMIT,
                    message="Apify temporarily unavailable (circuit breaker open)",
                    suggested_action="Wait for cooldown period or check Apify billing",
                ),
                duration_ms=elapsed_ms(),
            )

        if self.client is None:
            return ActorRunResult(
                success=False,
                error=ApifyError(type=ApifyErrorType.UNKNOWN, message="Apify client not configured"),
                duration_ms=elapsed_ms(),
            )

        attempts = 0
        last_error: Optional[ApifyError] = None
        while attempts < max_retries:
            attempts += 1
            try:
                logger.info("[Apify] Running %s (attempt %d/%d)", actor_id, attempts, max_retries)
                run = self.client.actor(actor_id).call(run_input=run_input)
                if not run:
                    raise RuntimeError("No run result returned")
                if run.get("status") != "SUCCEEDED":
                    raise RuntimeError(f"Actor run failed with status: {run.get('status')}")

                items = list(self.client.dataset(run["defaultDatasetId"]).iterate_items())
                logger.info("[Apify] %s completed successfully with %d items", actor_id, len(items))
                return ActorRunResult(success=True, data=items, attempts=attempts, duration_ms=elapsed_ms())

            except Exception as e:
                last_error = parse_error(e)
                logger.warning("[Apify] %s failed (attempt %d): %s", actor_id, attempts, last_error.message)
                self._record_failure(last_error)

                if not last_error.retryable:
                    break
                if attempts < max_retries:
                    delay = backoff_delay_ms(attempts)
                    logger.info("[Apify] Waiting %dms before retry...", delay)
                    self._sleep(delay / 1000)

        return ActorRunResult(success=False, error=last_error, attempts=attempts, duration_ms=elapsed_ms())

    def google_search(self, query: str, results_per_page: int = 5, max_retries: int = 2) -> list[dict[str, Any]]:
        """Organic results of a Google search actor run (empty on failure)."""
        result = self.run_actor(
            GOOGLE_SEARCH_ACTOR,
            {"queries": query, "maxPagesPerQuery": 1, "resultsPerPage": results_per_page},
            max_retries=max_retries,
        )
        if not result.success or not result.data:
            return []
        return result.data[0].get("organicResults") or []

    def fetch_page(self, query: str, max_retries: int = 1) -> Optional[dict[str, Any]]:
        """First RAG web browser item for a URL or search query, or None."""
        result = self.run_actor(
            RAG_WEB_BROWSER_ACTOR,
            {"query": query, "maxResults": 1, "outputFormats": ["markdown"]},
            max_retries=max_retries,
        )
        if not result.success or not result.data:
            return None
        return result.data[0]
