"""
Test helpers: a hand-built catalog and a scripted executor that replays
Postgres error messages.
"""

from typing import Callable, Dict, List, Optional, Union

import sqlglot

from src.config.constants import BUILTIN_FUNCTIONS
from src.sql.catalog.catalog import CatalogSnapshot, ColumnInfo, ForeignKey, TableInfo, build_functions
from src.sql.execution.executor import ExecutionError, ExecutionOutcome

Response = Union[str, ExecutionOutcome]

OK = ExecutionOutcome(columns=("value",), rows=((1,),))
EMPTY = ExecutionOutcome(columns=("value",), rows=())
TIMEOUT = "canceling statement due to statement timeout"


def _table(name: str, *columns) -> TableInfo:
    return TableInfo(
        name=name,
        columns=tuple(ColumnInfo(col, data_type, i) for i, (col, data_type) in enumerate(columns)),
        primary_key=("id",),
    )


def build_catalog() -> CatalogSnapshot:
    """departments / employees / projects with two foreign keys."""
    return CatalogSnapshot(
        tables=(
            _table("departments", ("id", "integer"), ("name", "text"), ("location", "text")),
            _table(
                "employees",
                ("id", "integer"),
                ("name", "text"),
                ("department", "text"),
                ("department_id", "integer"),
                ("salary", "real"),
                ("hired_at", "timestamp"),
                ("skills", "text[]"),
            ),
            _table("projects", ("id", "integer"), ("title", "text"), ("department_id", "integer"), ("budget", "numeric")),
        ),
        foreign_keys=(
            ForeignKey("employees", "department_id", "departments", "id"),
            ForeignKey("projects", "department_id", "departments", "id"),
        ),
        functions=build_functions(BUILTIN_FUNCTIONS["postgres"]),
        values={
            ("employees", "department"): ("Engineering", "Sales", "Marketing"),
            ("departments", "name"): ("Engineering", "Sales", "Marketing"),
            ("departments", "location"): ("Berlin", "Paris"),
        },
    )


def normalize_sql(sql: str) -> str:
    """Canonical Postgres rendering, so scripted responses ignore formatting."""
    return sqlglot.parse_one(sql, read="postgres").sql(dialect="postgres")


class ScriptedExecutor:
    """
    Executor replaying canned outcomes.

    Responses map SQL to an ExecutionOutcome or an error message. Unscripted
    SQL gets `default` (a response, or a callable producing one from the SQL).
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Response]] = None,
        default: Union[Response, Callable[[str], Response]] = TIMEOUT,
    ):
        self.responses = {normalize_sql(sql): response for sql, response in (responses or {}).items()}
        self.default = default
        self.executed: List[str] = []

    def execute(self, sql: str) -> ExecutionOutcome:
        self.executed.append(sql)
        key = normalize_sql(sql)
        if key in self.responses:
            response = self.responses[key]
        elif callable(self.default):
            response = self.default(sql)
        else:
            response = self.default

        if isinstance(response, ExecutionOutcome):
            return response
        return ExecutionOutcome(error=ExecutionError(message=response))
