"""
SQL layer - parsing, catalog and execution
"""

from src.sql.analysis import parse_sql
from src.sql.catalog import CatalogSnapshot, load_catalog, load_catalog_file
from src.sql.execution import ExecutionError, ExecutionOutcome, SQLExecutor

__all__ = [
    "parse_sql",
    "CatalogSnapshot",
    "load_catalog",
    "load_catalog_file",
    "ExecutionError",
    "ExecutionOutcome",
    "SQLExecutor",
]
