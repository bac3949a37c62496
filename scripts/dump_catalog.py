"""
Write the catalog snapshot of a database as JSON.

The file can be loaded with load_catalog_file() or by setting
SAFEQL_CATALOG_FILE.

Usage:
    python scripts/dump_catalog.py
    python scripts/dump_catalog.py --database-url postgresql://localhost/hr --output data/catalog.json
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.config.settings import settings
from src.infra.database import create_database_engine
from src.sql.catalog.loader import load_catalog, save_catalog_file
from src.utils.errors import CatalogError
from src.utils.logger import setup_logger


def main() -> int:
    parser = argparse.ArgumentParser(description="Dump the database catalog as JSON")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--schema", default=None, help="Schema to introspect (default schema if omitted)")
    parser.add_argument("--samples", type=int, default=None, help="Distinct values sampled per text column")
    parser.add_argument("--output", default=str(project_root / "data" / "catalog.json"))
    args = parser.parse_args()

    setup_logger(settings.log_level)

    engine = create_database_engine(args.database_url)
    try:
        catalog = load_catalog(engine, schema=args.schema, value_samples=args.samples)
    except CatalogError as e:
        print(f"\n❌ Failed to load catalog: {e}")
        return 1

    path = save_catalog_file(catalog, args.output)

    print("=" * 60)
    print("Catalog Snapshot")
    print("=" * 60)
    print(f"Version:       {catalog.version}")
    print(f"Tables:        {len(catalog.tables)}")
    print(f"Foreign keys:  {len(catalog.foreign_keys)}")
    print(f"Functions:     {len(catalog.functions)}")
    print(f"Value columns: {len(catalog.values)}")
    print(f"\n✅ Written to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
