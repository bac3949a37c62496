"""
Catalog layer - versioned metadata snapshots
"""

from src.sql.catalog.catalog import (
    CatalogSnapshot,
    ColumnInfo,
    ForeignKey,
    FunctionSignature,
    TableInfo,
    build_functions,
)
from src.sql.catalog.loader import load_catalog, load_catalog_file, save_catalog_file, sqlglot_dialect

__all__ = [
    "CatalogSnapshot",
    "ColumnInfo",
    "ForeignKey",
    "FunctionSignature",
    "TableInfo",
    "build_functions",
    "load_catalog",
    "load_catalog_file",
    "save_catalog_file",
    "sqlglot_dialect",
]
