"""
SQL refinement engine - structure-preserving correction of failing queries.

This package provides:
1. Error normalization: Convert raw DB errors to semantic types
2. Fault classification: Locate the faulty span and its refinement categories
3. Candidate generation, pruning and ranking per category
4. Search cache shared across sessions
5. Search driver: bounded classify / apply / execute state machine
"""

from src.refinement.error_types import SQLErrorType, NormalizedError
from src.refinement.error_parser import normalize_error, normalize_outcome
from src.refinement.categories import RefinementCategory
from src.refinement.models import (
    Candidate,
    Classification,
    FaultySpan,
    HopRecord,
    Query,
    RefinementResult,
    RefinementStatus,
    SearchState,
    SpanRole,
)
from src.refinement.classifier import classify
from src.refinement.generators import GENERATORS, generate
from src.refinement.pruner import prune
from src.refinement.ranker import rank_candidates
from src.refinement.cache import SearchCache, search_cache
from src.refinement.search import RefinementSearch, SearchPhase
from src.refinement.metrics import (
    record_fix,
    record_session,
    get_metrics_summary,
    log_metrics_summary,
    reset_metrics,
)

__all__ = [
    "SQLErrorType",
    "NormalizedError",
    "normalize_error",
    "normalize_outcome",
    "RefinementCategory",
    "Candidate",
    "Classification",
    "FaultySpan",
    "HopRecord",
    "Query",
    "RefinementResult",
    "RefinementStatus",
    "SearchState",
    "SpanRole",
    "classify",
    "GENERATORS",
    "generate",
    "prune",
    "rank_candidates",
    "SearchCache",
    "search_cache",
    "RefinementSearch",
    "SearchPhase",
    "record_fix",
    "record_session",
    "get_metrics_summary",
    "log_metrics_summary",
    "reset_metrics",
]
