"""
Data model of a refinement session.

Query and FaultySpan are immutable; SearchState is the only mutable record
and lives for one session.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlglot import exp

from src.refinement.categories import RefinementCategory
from src.refinement.edits import Edit
from src.refinement.error_types import NormalizedError, SQLErrorType
from src.sql.analysis.ast_utils import NodePath, node_at_path, parse_sql


@dataclass(frozen=True)
class Query:
    """
    Immutable parsed query.

    The tree is never mutated: apply() edits a copy, regenerates the SQL and
    re-parses it, so every Query is parse-valid by construction.
    """
    sql: str
    tree: exp.Expression = field(compare=False, hash=False, repr=False)
    dialect: str = "postgres"

    @classmethod
    def parse(cls, sql: str, dialect: str = "postgres") -> "Query":
        """
        Raises:
            ParseFailure: If the SQL is malformed
        """
        return cls(sql=sql, tree=parse_sql(sql, dialect=dialect), dialect=dialect)

    def node(self, path: NodePath) -> exp.Expression:
        return node_at_path(self.tree, path)

    def apply(self, span: "FaultySpan", edit: Edit) -> "Query":
        """
        Apply an edit at the span path and return the new Query.

        Raises:
            LookupError: If the span path or edit target is absent from this query
            ParseFailure: If the edited SQL does not parse
        """
        tree = self.tree.copy()
        edit.apply(node_at_path(tree, span.path), self.dialect)
        return Query.parse(tree.sql(dialect=self.dialect), self.dialect)


class SpanRole(Enum):
    """Syntactic role of the faulty node"""
    TABLE = "table"
    COLUMN = "column"           # select list, GROUP BY, ORDER BY, ...
    OPERAND = "operand"         # column compared in a predicate
    ARGUMENT = "argument"       # column passed to a function
    FUNCTION = "function"       # function call
    COMPARISON = "comparison"   # whole comparison (operator mismatch)
    LITERAL = "literal"         # string literal
    QUERY = "query"             # whole SELECT (empty result)


@dataclass(frozen=True)
class FaultySpan:
    """
    The AST node implicated by the latest error.

    Attributes:
        path: Location of the node in the query tree
        role: Syntactic role
        text: Offending text (column/table/function name, literal value, ...)
        qualifier: Table qualifier written on a column reference
        scope: In-scope tables as (table name, reference name) pairs
        context: Everything generators read (expected type, operand types,
            function name and argument types, compared column, ...)
    """
    path: NodePath
    role: SpanRole
    text: str
    qualifier: Optional[str] = None
    scope: Tuple[Tuple[str, str], ...] = ()
    context: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def fingerprint(self) -> str:
        """Stable hash of everything but the path; generator output depends only on it."""
        payload = json.dumps(
            [self.role.value, self.text, self.qualifier, [list(s) for s in self.scope], self.context],
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(payload.encode()).hexdigest()[:16]

    @property
    def expected_type(self) -> Optional[str]:
        return self.context.get("expected_type")

    def reference_table(self, reference: Optional[str]) -> Optional[str]:
        """Table name behind a qualifier, if the qualifier is in scope."""
        if not reference:
            return None
        for name, ref in self.scope:
            if ref.lower() == reference.lower():
                return name
        return None


@dataclass(frozen=True)
class Candidate:
    """
    One proposed edit.

    Attributes:
        category: Refinement category that produced it
        edit: Structural edit
        replacement: Text compared against the original for similarity
        original: Text the replacement is compared to (defaults to the span text)
        replacement_type: SQL type of the replacement (pruning)
        expected_type: Type required at the edited position (pruning)
        similarity: Score in [0, 1], set by the ranker
        rank: Weighted priority, lower explores first, set by the ranker
        provenance: Catalog entry or sampled value it came from
        order: Catalog declaration order (tie-break)
    """
    category: RefinementCategory
    edit: Edit
    replacement: str
    original: str = ""
    replacement_type: Optional[str] = None
    expected_type: Optional[str] = None
    similarity: float = 0.0
    rank: float = 0.0
    provenance: str = ""
    order: Tuple[int, ...] = ()

    @property
    def key(self) -> Tuple[str, Edit]:
        return (self.category.value, self.edit)


@dataclass(frozen=True)
class Classification:
    """Faulty span plus the ordered, enabled categories to try on it"""
    error_type: SQLErrorType
    span: FaultySpan
    categories: Tuple[RefinementCategory, ...]

    @property
    def signature(self) -> Tuple[str, str]:
        """Identity of an error: two errors with equal signatures are 'the same error'."""
        return (self.error_type.value, self.span.fingerprint)


class RefinementStatus(Enum):
    """Terminal outcome of a session"""
    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    UNCLASSIFIABLE = "unclassifiable"
    PARSE_FAILURE = "parse_failure"
    DISABLED = "disabled"


@dataclass(frozen=True)
class HopRecord:
    """One applied candidate and what executing it produced"""
    depth: int
    category: str
    replacement: str
    sql: str
    outcome: str  # success | new_error | same_error | depth_bound | unclassifiable | unavailable | invalid
    error: Optional[str] = None


@dataclass
class SearchState:
    """Session-scoped mutable search state"""
    current: Query
    last_error: Optional[NormalizedError] = None
    edits: int = 0
    depth: int = 0
    max_depth: int = 0
    tried: Set[Tuple[str, Tuple[str, Edit]]] = field(default_factory=set)
    visited: Set[str] = field(default_factory=set)
    executions: int = 0
    cache_hits: int = 0
    best: Optional[Query] = None
    best_depth: int = 0
    trace: List[HopRecord] = field(default_factory=list)

    def record_attempt(self, query: Query, depth: int) -> None:
        """Make `query` current and track the deepest query reached (the best-attempted one)."""
        self.current = query
        self.edits = depth
        self.depth = depth
        self.max_depth = max(self.max_depth, depth)
        if self.best is None or depth >= self.best_depth:
            self.best = query
            self.best_depth = depth


@dataclass
class RefinementResult:
    """Terminal report of a refinement session"""
    status: RefinementStatus
    original_sql: str
    sql: str
    query: Optional[Query] = None
    columns: Tuple[str, ...] = ()
    rows: Tuple[Tuple[Any, ...], ...] = ()
    last_error: Optional[NormalizedError] = None
    hops: int = 0
    executions: int = 0
    cache_hits: int = 0
    applied: List[Tuple[str, str]] = field(default_factory=list)
    trace: List[HopRecord] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == RefinementStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "original_sql": self.original_sql,
            "corrected_sql": self.sql if self.succeeded else None,
            "best_sql": self.sql,
            "hops": self.hops,
            "candidates_tried": self.executions,
            "cache_hits": self.cache_hits,
            "last_error": self.last_error.raw_message if self.last_error else None,
            "last_error_type": self.last_error.error_type.value if self.last_error else None,
            "columns": list(self.columns),
            "rows": [list(row) for row in self.rows],
            "applied": [{"category": c, "replacement": r} for c, r in self.applied],
            "trace": [
                {
                    "depth": hop.depth,
                    "category": hop.category,
                    "replacement": hop.replacement,
                    "sql": hop.sql,
                    "outcome": hop.outcome,
                    "error": hop.error,
                }
                for hop in self.trace
            ],
        }
