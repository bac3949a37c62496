"""
SQL executor - validate-only execution of candidate queries.

Every statement runs inside a connection that is rolled back afterwards, so
submitting candidates never has side effects. Database errors are returned
as structured ExecutionError values; only an unreachable database raises
CollaboratorUnavailable.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Tuple

from loguru import logger
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from src.config.settings import settings
from src.sql.catalog.loader import sqlglot_dialect
from src.utils.errors import CollaboratorUnavailable

FORBIDDEN_KEYWORDS = ["INSERT", "UPDATE", "DELETE", "DROP", "ALTER", "CREATE", "TRUNCATE", "GRANT"]


@dataclass(frozen=True)
class ExecutionError:
    """
    Structured error returned by the DBMS.

    Attributes:
        message: Primary error message (first line)
        code: SQLSTATE or vendor error code, if available
        position: 1-based character offset of the offending token, if reported
    """
    message: str
    code: Optional[str] = None
    position: Optional[int] = None


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of submitting one query: rows or an error"""
    columns: Tuple[str, ...] = ()
    rows: Tuple[Tuple[Any, ...], ...] = ()
    error: Optional[ExecutionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Executor(Protocol):
    """DBMS execution channel used by the search driver"""

    def execute(self, sql: str) -> ExecutionOutcome:
        ...


class SQLExecutor:
    """
    Execute candidate queries through SQLAlchemy, read-only.
    """

    def __init__(self, engine: Engine, max_rows: Optional[int] = None):
        """
        Args:
            engine: SQLAlchemy engine
            max_rows: Rows fetched per successful query (default: settings.max_result_rows)
        """
        self.engine = engine
        self.max_rows = max_rows or settings.max_result_rows
        self.dialect = sqlglot_dialect(engine)
        logger.info(f"SQL executor ready (dialect={self.dialect}, max_rows={self.max_rows})")

    def execute(self, sql: str) -> ExecutionOutcome:
        """
        Execute a query and roll back.

        Returns:
            ExecutionOutcome with rows, or with a structured error

        Raises:
            CollaboratorUnavailable: If no connection could be obtained
        """
        violation = self._validate_query(sql)
        if violation:
            return ExecutionOutcome(error=ExecutionError(message=violation, code="READ_ONLY"))

        try:
            conn = self.engine.connect()
        except SQLAlchemyError as e:
            logger.error(f"❌ Database unavailable: {e}")
            raise CollaboratorUnavailable("executor", str(e)) from e

        try:
            result = conn.exec_driver_sql(sql)
            if result.returns_rows:
                columns = tuple(result.keys())
                rows = tuple(tuple(row) for row in result.fetchmany(self.max_rows))
            else:
                columns, rows = (), ()
            logger.debug(f"Executed OK ({len(rows)} rows): {sql[:200]}")
            return ExecutionOutcome(columns=columns, rows=rows)
        except DBAPIError as e:
            if e.connection_invalidated:
                raise CollaboratorUnavailable("executor", str(e.orig)) from e
            error = structured_error(e)
            logger.debug(f"Execution failed [{error.code}]: {error.message}")
            return ExecutionOutcome(error=error)
        finally:
            try:
                conn.rollback()
            finally:
                conn.close()

    def _validate_query(self, query: str) -> Optional[str]:
        """Return a violation message unless the query is a plain SELECT/WITH."""
        query_upper = query.strip().upper()

        if not query_upper.startswith(("SELECT", "WITH", "(")):
            return "Only SELECT queries are allowed"

        # Word boundaries avoid matching "createdAt" as CREATE
        for keyword in FORBIDDEN_KEYWORDS:
            if re.search(r"\b" + re.escape(keyword) + r"\b", query_upper):
                return f"Query contains forbidden keyword '{keyword}'"
        return None


def structured_error(error: DBAPIError) -> ExecutionError:
    """
    Extract code, message and position from a DBAPI exception.

    Handles psycopg2/psycopg (pgcode/sqlstate + diag.statement_position),
    MySQL drivers (errno in args[0]) and sqlite3 (message only).
    """
    orig = error.orig if error.orig is not None else error
    message = str(orig).strip().splitlines()[0] if str(orig).strip() else str(error)

    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code is None and getattr(orig, "args", None):
        first = orig.args[0]
        if isinstance(first, int):
            code = str(first)

    position = None
    diag = getattr(orig, "diag", None)
    raw_position = getattr(diag, "statement_position", None) if diag is not None else None
    if raw_position:
        try:
            position = int(raw_position)
        except (TypeError, ValueError):
            position = None

    return ExecutionError(message=message, code=code, position=position)
