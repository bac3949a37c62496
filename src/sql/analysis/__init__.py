"""
SQL analysis utilities using sqlglot AST
"""

from src.sql.analysis.ast_utils import (
    parse_sql,
    node_path,
    node_at_path,
    iter_nodes,
    scope_tables,
    reference_name,
    function_name,
    function_arguments,
    syntactic_role,
)

__all__ = [
    "parse_sql",
    "node_path",
    "node_at_path",
    "iter_nodes",
    "scope_tables",
    "reference_name",
    "function_name",
    "function_arguments",
    "syntactic_role",
]
