"""
Run the SQL refinement API with uvicorn.

Usage:
    python scripts/run_server.py --reload
    SAFEQL_DATABASE_URL=postgresql://localhost/hr python scripts/run_server.py --workers 4
    python scripts/run_server.py --catalog data/catalog.json --port 9000
"""

import argparse
import os
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
os.chdir(project_root)

import uvicorn
from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the SQL refinement API")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Reload on source changes (development)")
    parser.add_argument("--workers", type=int, default=1, help="Worker processes (ignored with --reload)")
    parser.add_argument("--database-url", help="Overrides SAFEQL_DATABASE_URL")
    parser.add_argument("--catalog", help="Catalog JSON snapshot; overrides SAFEQL_CATALOG_FILE")
    return parser.parse_args()


def main():
    """Start uvicorn on src.api.app:app"""
    args = parse_args()

    # Worker processes import settings from the environment
    if args.database_url:
        os.environ["SAFEQL_DATABASE_URL"] = args.database_url
    if args.catalog:
        os.environ["SAFEQL_CATALOG_FILE"] = args.catalog

    mode = "development" if args.reload else "production"
    base_url = f"http://localhost:{args.port}"
    logger.info("=" * 80)
    logger.info(f"SQL Refinement - API Server ({mode})")
    logger.info("=" * 80)
    logger.info(f"Refine: POST {base_url}/api/refine")
    logger.info(f"Catalog reload: POST {base_url}/api/catalog/reload")
    logger.info(f"Health Check: {base_url}/health")
    logger.info(f"API Documentation: {base_url}/docs")
    logger.info("=" * 80)

    options = {
        "host": args.host,
        "port": args.port,
        "log_level": "info",
        "access_log": True,
    }
    if args.reload:
        options.update(reload=True, reload_dirs=[str(project_root / "src")])
    else:
        options.update(workers=args.workers)

    uvicorn.run("src.api.app:app", **options)


if __name__ == "__main__":
    main()
