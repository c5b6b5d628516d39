"""
Orchestration Module - Request Routing

This module provides the CONTEXT → CLASSIFY → ROUTE flow:
- ContextBuilder: Snapshots schedule, backlog, preferences and email state
- extract_entities: Regex pass for dates, times, durations and people
- IntentClassifier: Gemini classification with cache and keyword fallback
- Router: Resolves handler names, dates and block references
- Orchestrator: Entry point; runs day planning and holds proposals for approval
- RateLimiter / RetryPolicy: Guard the LLM call
"""
from .orchestrator import Orchestrator, build_orchestrator
from .types import (
    OrchestrationContext,
    OrchestrationResult,
    Intent,
    IntentCategory,
    IntentEntities,
    IntentSource,
    WorkflowRef,
    ToolRef,
    DirectRef,
    RejectedAction,
)
from .context_builder import ContextBuilder
from .entity_extractor import extract_entities
from .classifier import IntentClassifier, ClassificationError, keyword_fallback
from .intent_cache import IntentCache, make_cache_key
from .router import Router
from .rate_limiter import RateLimiter, RateLimitExceededError
from .retry import RetryPolicy

__all__ = [
    # Main orchestrator
    "Orchestrator",
    "build_orchestrator",
    "OrchestrationResult",
    # Context
    "ContextBuilder",
    "OrchestrationContext",
    "RejectedAction",
    # Classification
    "IntentClassifier",
    "ClassificationError",
    "keyword_fallback",
    "extract_entities",
    "Intent",
    "IntentCategory",
    "IntentEntities",
    "IntentSource",
    "IntentCache",
    "make_cache_key",
    # Routing
    "Router",
    "WorkflowRef",
    "ToolRef",
    "DirectRef",
    # LLM guards
    "RateLimiter",
    "RateLimitExceededError",
    "RetryPolicy",
]
