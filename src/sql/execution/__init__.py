"""
SQL execution - validate-only query execution
"""

from src.sql.execution.executor import (
    ExecutionError,
    ExecutionOutcome,
    Executor,
    SQLExecutor,
    structured_error,
)

__all__ = [
    "ExecutionError",
    "ExecutionOutcome",
    "Executor",
    "SQLExecutor",
    "structured_error",
]
