"""
Refine a failing SQL query from the command line.

Usage:
    python scripts/refine_query.py "SELECT dept FROM employees"
    python scripts/refine_query.py --database-url postgresql://localhost/hr \\
        --error 'column "dept" does not exist' "SELECT dept FROM employees"
    python scripts/refine_query.py --catalog data/catalog.json "SELECT ..."
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.config.settings import settings
from src.infra.database import create_database_engine
from src.refinement.metrics import log_metrics_summary
from src.refinement.search import RefinementSearch
from src.sql.catalog.loader import load_catalog, load_catalog_file
from src.sql.execution.executor import SQLExecutor
from src.utils.errors import CatalogError, CollaboratorUnavailable
from src.utils.logger import setup_logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refine a failing SQL query")
    parser.add_argument("sql", help="SQL query to refine")
    parser.add_argument("--database-url", default=settings.database_url, help="SQLAlchemy database URL")
    parser.add_argument("--error", default=None, help="Error message the query produced (executed if omitted)")
    parser.add_argument("--catalog", default=settings.catalog_file, help="Catalog JSON (introspects the database if omitted)")
    parser.add_argument("--log-level", default=settings.log_level)
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    setup_logger(args.log_level)

    engine = create_database_engine(args.database_url)
    try:
        catalog = load_catalog_file(args.catalog) if args.catalog else load_catalog(engine)
        executor = SQLExecutor(engine)
    except (CatalogError, CollaboratorUnavailable) as e:
        print(f"\n❌ {e}")
        return 2

    result = RefinementSearch(executor, catalog).refine_sql(args.sql, args.error)

    print("=" * 60)
    print("SQL Refinement")
    print("=" * 60)
    print(f"Status:     {result.status.value}")
    print(f"Original:   {result.original_sql}")
    print(f"Result:     {result.sql}")
    print(f"Hops:       {result.hops}")
    print(f"Candidates: {result.executions} (cache hits: {result.cache_hits})")
    if result.last_error is not None:
        print(f"Last error: {result.last_error.raw_message}")

    if result.trace:
        print("\nTrace:")
        for hop in result.trace:
            marker = "✅" if hop.outcome == "success" else "  "
            print(f"  {marker} [{hop.depth}] {hop.category:<32} {hop.replacement!r:<24} {hop.outcome}")

    if result.succeeded and result.columns:
        print(f"\nColumns: {', '.join(result.columns)}")
        for row in result.rows[:10]:
            print(f"  {row}")

    log_metrics_summary()
    return 0 if result.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
