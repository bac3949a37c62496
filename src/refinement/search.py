"""
Search driver - iterative classify / generate / rank / apply / execute loop.

The driver is an explicit state machine over a stack of frames. Each frame
holds the ranked candidates of one faulty span at one hop depth; the deepest
frame is explored first and popped when it runs out of untried candidates
(bounded depth-first backtracking).

Bounds:
- max_refinement_hop: edits stacked on one query (frame depth < bound)
- max_refinement_num: candidate executions per session
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from loguru import logger

from src.config.settings import RefinementSettings, settings
from src.llm.similarity import SimilarityBackend, get_similarity_backend
from src.refinement import metrics
from src.refinement.cache import SearchCache, search_cache
from src.refinement.categories import RefinementCategory
from src.refinement.classifier import classify
from src.refinement.error_parser import normalize_error, normalize_execution_error, normalize_outcome
from src.refinement.error_types import NormalizedError, SQLErrorType
from src.refinement.generators import generate
from src.refinement.models import (
    Candidate,
    Classification,
    HopRecord,
    Query,
    RefinementResult,
    RefinementStatus,
    SearchState,
)
from src.refinement.pruner import prune
from src.refinement.ranker import Ranking, rank_candidates
from src.sql.catalog.catalog import CatalogSnapshot
from src.sql.execution.executor import ExecutionError, ExecutionOutcome, Executor
from src.utils.errors import CollaboratorUnavailable, ParseFailure

ErrorInput = Union[NormalizedError, ExecutionError, str]


class SearchPhase(Enum):
    """States of the search driver"""
    INIT = "init"
    CLASSIFYING = "classifying"
    GENERATING = "generating"
    RANKING = "ranking"
    APPLYING = "applying"
    EXECUTING = "executing"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    UNCLASSIFIABLE = "unclassifiable"


@dataclass
class _Frame:
    """Ranked candidates for one span of one query at one depth"""
    query: Query
    classification: Classification
    candidates: Tuple[Candidate, ...]
    depth: int
    next_index: int = 0

    @property
    def exhausted(self) -> bool:
        return self.next_index >= len(self.candidates)

    @property
    def current(self) -> Optional[Candidate]:
        """Candidate most recently taken from this frame."""
        return self.candidates[self.next_index - 1] if self.next_index > 0 else None


class RefinementSearch:
    """
    Refines a failing query against a catalog snapshot and an executor.

    Example:
        >>> search = RefinementSearch(SQLExecutor(engine), catalog)
        >>> result = search.refine_sql("SELECT dept FROM employees")
        >>> result.status, result.sql
        (<RefinementStatus.SUCCESS: 'success'>, 'SELECT department FROM employees')
    """

    def __init__(
        self,
        executor: Executor,
        catalog: CatalogSnapshot,
        similarity: Optional[SimilarityBackend] = None,
        config: Optional[RefinementSettings] = None,
        cache: Optional[SearchCache] = None,
    ):
        """
        Args:
            executor: DBMS execution channel
            catalog: Catalog snapshot used for every session of this instance
            similarity: Similarity backend (default: from settings.similarity_backend)
            config: Settings to snapshot per session (default: global settings)
            cache: Search cache (default: the process-wide cache)
        """
        self.executor = executor
        self.catalog = catalog
        self.config = config or settings
        self.similarity = similarity or get_similarity_backend(self.config)
        self.cache = cache if cache is not None else search_cache
        self.dialect = getattr(executor, "dialect", None) or self.config.sql_dialect

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def refine_sql(self, sql: str, error: Optional[ErrorInput] = None) -> RefinementResult:
        """
        Parse and refine SQL text. Without an error the query is executed once
        first; a query that already succeeds is returned with zero hops.
        """
        try:
            query = Query.parse(sql, self.dialect)
        except ParseFailure as e:
            logger.warning(f"Not refining malformed SQL: {e.reason}")
            return RefinementResult(
                status=RefinementStatus.PARSE_FAILURE,
                original_sql=sql,
                sql=sql,
                last_error=NormalizedError(SQLErrorType.SYNTAX_ERROR, e.reason),
            )

        if error is None:
            config = self.config.snapshot()
            try:
                outcome = self.executor.execute(query.sql)
            except CollaboratorUnavailable as e:
                logger.error(f"Could not execute original query: {e}")
                return self._finish(
                    RefinementStatus.EXHAUSTED,
                    query,
                    SearchState(current=query, last_error=NormalizedError(SQLErrorType.OTHER, str(e)), best=query),
                )
            normalized = normalize_outcome(outcome, config.treat_empty_result_as_error)
            if normalized is None:
                logger.info("Query succeeded without refinement")
                return self._finish(RefinementStatus.SUCCESS, query, SearchState(current=query, best=query), outcome=outcome)
            error = normalized

        return self.refine(query, error)

    def refine(self, query: Query, error: ErrorInput) -> RefinementResult:
        """
        Search for a minimally edited query that executes successfully.

        Args:
            query: Parsed failing query
            error: The error executing it produced

        Returns:
            RefinementResult (never raises for search outcomes)
        """
        phase = SearchPhase.INIT
        config = self.config.snapshot()
        state = SearchState(current=query, last_error=_coerce_error(error), best=query)
        state.visited.add(query.sql)

        if not config.enable_safeql_refinement:
            logger.info("Refinement disabled, returning original query")
            return self._finish(RefinementStatus.DISABLED, query, state)

        if config.max_refinement_hop == 0:
            logger.info("max_refinement_hop is 0, nothing to explore")
            return self._finish(RefinementStatus.EXHAUSTED, query, state)

        if config.enable_search_cache:
            self.cache.ensure_version(self.catalog.version)

        phase = SearchPhase.CLASSIFYING
        classification = classify(state.last_error, query, self.catalog, config)
        if classification is None:
            logger.info(f"Unclassifiable error: {state.last_error}")
            return self._finish(RefinementStatus.UNCLASSIFIABLE, query, state)

        phase = SearchPhase.GENERATING
        frames: List[_Frame] = [self._expand(query, classification, 0, state, config)]
        phase = SearchPhase.APPLYING

        while True:
            if phase == SearchPhase.APPLYING:
                if not frames:
                    phase = SearchPhase.EXHAUSTED
                    continue

                frame = frames[-1]
                if frame.exhausted:
                    frames.pop()
                    logger.debug(f"Backtracking from depth {frame.depth}")
                    continue

                candidate = frame.candidates[frame.next_index]
                frame.next_index += 1
                span = frame.classification.span
                pair = (span.fingerprint, candidate.key)
                if pair in state.tried:
                    continue
                state.tried.add(pair)

                try:
                    new_query = frame.query.apply(span, candidate.edit)
                except (ParseFailure, LookupError) as e:
                    logger.debug(f"Discarded {candidate.category.value} '{candidate.replacement}': {e}")
                    state.trace.append(self._hop(frame.depth + 1, candidate, frame.query.sql, "invalid", str(e)))
                    continue

                if new_query.sql in state.visited:
                    continue
                if state.executions >= config.max_refinement_num:
                    logger.info(f"Reached max_refinement_num={config.max_refinement_num}")
                    phase = SearchPhase.EXHAUSTED
                    continue
                state.visited.add(new_query.sql)
                phase = SearchPhase.EXECUTING

            elif phase == SearchPhase.EXECUTING:
                depth = frame.depth + 1
                state.executions += 1
                metrics.record_fix(candidate.category, success=False)
                try:
                    outcome = self.executor.execute(new_query.sql)
                except CollaboratorUnavailable as e:
                    logger.warning(f"Executor unavailable for candidate, skipping: {e}")
                    state.trace.append(self._hop(depth, candidate, new_query.sql, "unavailable", str(e)))
                    phase = SearchPhase.APPLYING
                    continue

                state.record_attempt(new_query, depth)
                new_error = normalize_outcome(outcome, config.treat_empty_result_as_error)

                if new_error is None:
                    state.trace.append(self._hop(depth, candidate, new_query.sql, "success"))
                    phase = SearchPhase.SUCCESS
                    continue

                state.last_error = new_error
                logger.info(
                    f"Hop {depth}: {candidate.category.value} '{candidate.replacement}' "
                    f"-> {new_error.error_type.value}"
                )

                if depth >= config.max_refinement_hop:
                    state.trace.append(self._hop(depth, candidate, new_query.sql, "depth_bound", new_error.raw_message))
                    phase = SearchPhase.APPLYING
                    continue

                phase = SearchPhase.CLASSIFYING
                next_classification = classify(new_error, new_query, self.catalog, config)
                if next_classification is None:
                    state.trace.append(self._hop(depth, candidate, new_query.sql, "unclassifiable", new_error.raw_message))
                    phase = SearchPhase.APPLYING
                    continue

                if next_classification.signature == frame.classification.signature:
                    state.trace.append(self._hop(depth, candidate, new_query.sql, "same_error", new_error.raw_message))
                    phase = SearchPhase.APPLYING
                    continue

                state.trace.append(self._hop(depth, candidate, new_query.sql, "new_error", new_error.raw_message))
                phase = SearchPhase.GENERATING
                frames.append(self._expand(new_query, next_classification, depth, state, config))
                phase = SearchPhase.APPLYING

            elif phase == SearchPhase.SUCCESS:
                for applied in frames:
                    metrics.record_fix(applied.current.category, success=True)
                logger.success(
                    f"Refined query in {state.edits} hop(s), {state.executions} execution(s): {state.current.sql}"
                )
                return self._finish(RefinementStatus.SUCCESS, query, state, outcome=outcome, frames=frames)

            elif phase == SearchPhase.EXHAUSTED:
                logger.info(f"Search exhausted after {state.executions} execution(s)")
                return self._finish(RefinementStatus.EXHAUSTED, query, state)

    # ------------------------------------------------------------------
    # Generating / ranking
    # ------------------------------------------------------------------

    def _expand(
        self,
        query: Query,
        classification: Classification,
        depth: int,
        state: SearchState,
        config: RefinementSettings,
    ) -> _Frame:
        """Ranked candidates of every category of a classification, as a new frame."""
        span = classification.span
        position: Dict[RefinementCategory, int] = {
            category: index for index, category in enumerate(classification.categories)
        }

        ranked: List[Candidate] = []
        for category in classification.categories:
            ranked.extend(self._ranked(category, classification, state, config))
        ranked.sort(key=lambda c: (c.rank, position[c.category], c.order))

        logger.debug(
            f"Depth {depth}: {len(ranked)} candidate(s) for '{span.text}' "
            f"({', '.join(c.value for c in classification.categories)})"
        )
        return _Frame(query=query, classification=classification, candidates=tuple(ranked), depth=depth)

    def _ranked(
        self,
        category: RefinementCategory,
        classification: Classification,
        state: SearchState,
        config: RefinementSettings,
    ) -> Tuple[Candidate, ...]:
        span = classification.span

        def compute() -> Ranking:
            candidates = generate(category, span, self.catalog, config)
            candidates = prune(candidates, span, config)
            return rank_candidates(candidates, span, self.similarity, config)

        if not config.enable_search_cache:
            return compute().candidates

        key = SearchCache.make_key(
            span.fingerprint,
            category,
            self.catalog.version,
            config.ranking_signature(self.similarity),
        )
        ranked, hit = self.cache.get_or_compute(key, compute)
        if hit:
            state.cache_hits += 1
        return ranked

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    @staticmethod
    def _hop(depth: int, candidate: Candidate, sql: str, outcome: str, error: Optional[str] = None) -> HopRecord:
        return HopRecord(
            depth=depth,
            category=candidate.category.value,
            replacement=candidate.replacement,
            sql=sql,
            outcome=outcome,
            error=error,
        )

    def _finish(
        self,
        status: RefinementStatus,
        origin: Query,
        state: SearchState,
        outcome: Optional[ExecutionOutcome] = None,
        frames: Optional[List[_Frame]] = None,
    ) -> RefinementResult:
        if status == RefinementStatus.SUCCESS:
            final, hops, last_error = state.current, state.edits, None
        else:
            # Never report partial progress as success
            final, hops, last_error = state.best or origin, state.max_depth, state.last_error

        applied = [
            (frame.current.category.value, frame.current.replacement)
            for frame in (frames or []) if frame.current is not None
        ]
        metrics.record_session(status.value, executions=state.executions, hops=state.max_depth)

        return RefinementResult(
            status=status,
            original_sql=origin.sql,
            sql=final.sql,
            query=final,
            columns=outcome.columns if outcome is not None else (),
            rows=outcome.rows if outcome is not None else (),
            last_error=last_error,
            hops=hops,
            executions=state.executions,
            cache_hits=state.cache_hits,
            applied=applied,
            trace=list(state.trace),
        )


def _coerce_error(error: ErrorInput) -> NormalizedError:
    if isinstance(error, NormalizedError):
        return error
    if isinstance(error, ExecutionError):
        return normalize_execution_error(error)
    return normalize_error(str(error))
