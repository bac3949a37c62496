"""
Main FastAPI application for the SQL refinement service

This module creates and configures the FastAPI application with:
- CORS middleware
- API routes (refine, catalog reload)
- Health check endpoint
- Auto-generated API documentation
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy.engine import Engine

from src.api.dependencies import build_search, load_app_catalog
from src.api.routes import refine
from src.api.schemas import HealthResponse
from src.config.settings import settings
from src.infra.database import check_connection, get_engine, reset_engine
from src.refinement.cache import search_cache
from src.refinement.metrics import log_metrics_summary
from src.sql.execution.executor import SQLExecutor
from src.utils.logger import setup_logger

API_VERSION = "1.0.0"


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the application.

    Args:
        engine: Database engine; defaults to the global engine for settings.database_url
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan events

        - Startup: connect, load the catalog snapshot, build the search driver
        - Shutdown: log refinement metrics, dispose the settings engine
        """
        logger.info("🚀 SQL refinement API starting...")
        app.state.engine = engine or get_engine()
        if not check_connection(app.state.engine):
            logger.warning("⚠️  Database not reachable; refinement requests will fail until it is")

        app.state.executor = SQLExecutor(app.state.engine)
        app.state.catalog = load_app_catalog(app.state.engine)
        app.state.search = build_search(app.state.executor, app.state.catalog)
        logger.info(
            f"✅ Catalog ready: {len(app.state.catalog.tables)} tables, version {app.state.catalog.version}"
        )

        yield

        logger.info("🛑 SQL refinement API shutting down...")
        log_metrics_summary()
        if engine is None:
            reset_engine()

    app = FastAPI(
        title="SQL Refinement API",
        description="""
    Corrects syntactically valid but semantically wrong SQL.

    ## Usage

    Send the failing query (and, optionally, the error it produced) to
    `/api/refine`. The service localizes the faulty fragment, proposes
    minimal edits, and validates them against the database.

    ```bash
    curl -X POST http://localhost:8000/api/refine \\
         -H "Content-Type: application/json" \\
         -d '{"sql": "SELECT dept FROM employees"}'
    ```
    """,
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(refine.router)

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check():
        """
        Health check endpoint

        Returns service status, version, catalog version and search cache size.
        """
        catalog = getattr(app.state, "catalog", None)
        return HealthResponse(
            status="healthy",
            service="sql-refinement-api",
            version=API_VERSION,
            catalog_version=catalog.version if catalog is not None else None,
            cache_size=len(search_cache),
        )

    return app


setup_logger(settings.log_level, settings.log_file or None)
app = create_app()
