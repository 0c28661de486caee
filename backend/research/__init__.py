"""
festifind Research Package

Festival enrichment through Apify actors and LLM validation.
"""

from .apify import ActorRunResult, ApifyErrorType, ResilientApifyClient
from .orchestrator import OrchestratorOptions, ResearchOrchestrator, ResearchPhase, ResearchState
from .validation import AIValidationService

__all__ = [
    "ActorRunResult",
    "AIValidationService",
    "ApifyErrorType",
    "OrchestratorOptions",
    "ResearchOrchestrator",
    "ResearchPhase",
    "ResearchState",
    "ResilientApifyClient",
]
