"""
Runtime objects shared by the API: catalog snapshot and search driver
"""

from loguru import logger
from sqlalchemy.engine import Engine

from src.config.settings import settings
from src.refinement.search import RefinementSearch
from src.sql.catalog.catalog import CatalogSnapshot
from src.sql.catalog.loader import load_catalog, load_catalog_file
from src.sql.execution.executor import SQLExecutor


def load_app_catalog(engine: Engine, force_reload: bool = False) -> CatalogSnapshot:
    """
    Load the catalog from settings.catalog_file, or introspect the engine.

    Raises:
        CatalogError: If the catalog cannot be loaded
    """
    if settings.catalog_file:
        logger.info(f"Loading catalog from {settings.catalog_file}")
        return load_catalog_file(settings.catalog_file, force_reload=force_reload)
    return load_catalog(engine)


def build_search(executor: SQLExecutor, catalog: CatalogSnapshot) -> RefinementSearch:
    """Search driver over the global settings (snapshotted per session)."""
    return RefinementSearch(executor, catalog, config=settings)
