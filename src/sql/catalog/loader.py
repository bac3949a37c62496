"""
Catalog loading and caching

Builds CatalogSnapshot objects from a live database (SQLAlchemy inspection)
or from a JSON file written by scripts/dump_catalog.py.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import column, inspect, select, table, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from src.config.constants import BUILTIN_FUNCTIONS, SQLALCHEMY_TO_SQLGLOT
from src.config.settings import settings
from src.sql.catalog.catalog import (
    CatalogSnapshot,
    ColumnInfo,
    ForeignKey,
    FunctionSignature,
    TableInfo,
    build_functions,
)
from src.sql.catalog.types import type_family
from src.utils.errors import CatalogError

# Cache for catalogs loaded from disk, keyed by resolved path
_cached_files: Dict[str, CatalogSnapshot] = {}

_POSTGRES_FUNCTIONS_SQL = """
SELECT p.proname AS name,
       pg_catalog.oidvectortypes(p.proargtypes) AS arg_types,
       pg_catalog.format_type(p.prorettype, NULL) AS return_type
FROM pg_catalog.pg_proc p
JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
WHERE n.nspname NOT IN ('pg_catalog', 'information_schema')
  AND p.prokind = 'f'
ORDER BY p.proname
"""


def sqlglot_dialect(engine: Engine) -> str:
    """sqlglot dialect name for an SQLAlchemy engine."""
    return SQLALCHEMY_TO_SQLGLOT.get(engine.dialect.name, engine.dialect.name)


def load_catalog(
    engine: Engine,
    schema: Optional[str] = None,
    value_samples: Optional[int] = None,
) -> CatalogSnapshot:
    """
    Introspect a database into a CatalogSnapshot.

    Args:
        engine: SQLAlchemy engine
        schema: Schema to inspect (default schema when None)
        value_samples: Max distinct values sampled per string column
            (defaults to settings.value_refinement_samples; 0 disables sampling)

    Returns:
        CatalogSnapshot with tables, foreign keys, functions and sampled values

    Raises:
        CatalogError: If introspection fails
    """
    if value_samples is None:
        value_samples = settings.value_refinement_samples

    dialect = sqlglot_dialect(engine)
    logger.info(f"Loading catalog from {engine.url.render_as_string(hide_password=True)} (dialect={dialect})")

    try:
        inspector = inspect(engine)
        tables: List[TableInfo] = []
        foreign_keys: List[ForeignKey] = []

        for table_name in inspector.get_table_names(schema=schema):
            raw_columns = inspector.get_columns(table_name, schema=schema)
            columns = tuple(
                ColumnInfo(name=c["name"], data_type=str(c["type"]), ordinal=i)
                for i, c in enumerate(raw_columns)
            )
            pk = inspector.get_pk_constraint(table_name, schema=schema) or {}
            tables.append(TableInfo(table_name, columns, tuple(pk.get("constrained_columns") or ())))

            for fk in inspector.get_foreign_keys(table_name, schema=schema):
                for from_col, to_col in zip(fk["constrained_columns"], fk["referred_columns"]):
                    foreign_keys.append(ForeignKey(table_name, from_col, fk["referred_table"], to_col))

        with engine.connect() as conn:
            functions = _load_functions(conn, dialect)
            values = _sample_values(conn, tables, value_samples) if value_samples > 0 else {}
    except SQLAlchemyError as e:
        logger.error(f"Failed to load catalog: {e}")
        raise CatalogError(f"Catalog introspection failed: {e}") from e

    catalog = CatalogSnapshot(
        tables=tuple(tables),
        foreign_keys=tuple(foreign_keys),
        functions=functions,
        values=values,
    )
    logger.info(
        f"Loaded catalog: {len(tables)} tables, {len(foreign_keys)} relationships, "
        f"{len(functions)} functions, {len(values)} sampled columns (version={catalog.version})"
    )
    return catalog


def _load_functions(conn: Connection, dialect: str) -> Tuple[FunctionSignature, ...]:
    """Built-in signatures for the dialect plus user functions where the DBMS exposes them."""
    functions = list(build_functions(BUILTIN_FUNCTIONS.get(dialect, BUILTIN_FUNCTIONS["postgres"])))

    if dialect == "postgres":
        rows = conn.execute(text(_POSTGRES_FUNCTIONS_SQL)).fetchall()
        for name, arg_types, return_type in rows:
            args = tuple(a.strip() for a in arg_types.split(",") if a.strip())
            functions.append(FunctionSignature(name, args, return_type))
        logger.debug(f"Loaded {len(rows)} user-defined functions from pg_proc")

    return tuple(functions)


def _sample_values(
    conn: Connection,
    tables: List[TableInfo],
    limit: int,
) -> Dict[Tuple[str, str], Tuple[str, ...]]:
    """Sample distinct non-empty values of every string column."""
    values: Dict[Tuple[str, str], Tuple[str, ...]] = {}
    for info in tables:
        for col in info.columns:
            if type_family(col.data_type) != "text":
                continue
            target = column(col.name)
            stmt = (
                select(target)
                .select_from(table(info.name))
                .where(target.is_not(None))
                .where(target != "")
                .distinct()
                .limit(limit)
            )
            rows = conn.execute(stmt).fetchall()
            values[(info.name, col.name)] = tuple(str(row[0]) for row in rows)
    return values


def load_catalog_file(path: str | Path, force_reload: bool = False) -> CatalogSnapshot:
    """
    Load a catalog snapshot from JSON.

    Args:
        path: JSON file in the CatalogSnapshot.to_dict() layout
        force_reload: If True, reload from disk even if cached

    Raises:
        CatalogError: If the file is missing or malformed
    """
    resolved = str(Path(path).resolve())

    if resolved in _cached_files and not force_reload:
        return _cached_files[resolved]

    try:
        with open(resolved, "r", encoding="utf-8") as f:
            data = json.load(f)
        catalog = CatalogSnapshot.from_dict(data)
    except (OSError, ValueError, KeyError) as e:
        raise CatalogError(f"Could not load catalog from {resolved}: {e}") from e

    logger.info(f"Loaded catalog file {resolved}: {len(catalog.tables)} tables (version={catalog.version})")
    _cached_files[resolved] = catalog
    return catalog


def save_catalog_file(catalog: CatalogSnapshot, path: str | Path) -> Path:
    """Write a catalog snapshot as JSON."""
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(catalog.to_dict(), f, indent=2)
    logger.info(f"Saved catalog snapshot to {out_path}")
    return out_path
