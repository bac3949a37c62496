"""
Refinement endpoints

The search is blocking (DBMS round trips), so handlers are plain `def`
functions and FastAPI runs them in its threadpool.
"""

from fastapi import APIRouter, HTTPException, Request
from loguru import logger

from src.api.dependencies import build_search, load_app_catalog
from src.api.schemas import CatalogReloadResponse, RefineRequest, RefineResponse
from src.sql.execution.executor import ExecutionError
from src.utils.errors import CatalogError


router = APIRouter(prefix="/api", tags=["refine"])


@router.post("/refine", response_model=RefineResponse)
def refine(body: RefineRequest, request: Request) -> RefineResponse:
    """
    Refine a failing SQL query.

    Returns the corrected query (status "success") or the best attempt with
    the last error. Malformed SQL is reported with status "parse_failure".
    """
    search = request.app.state.search
    error = None
    if body.error is not None:
        error = ExecutionError(message=body.error.message, code=body.error.code, position=body.error.position)

    logger.info(f"Refine request: {body.sql[:200]}")
    result = search.refine_sql(body.sql, error)
    logger.info(f"Refine finished: {result.status.value} ({result.executions} candidates, {result.hops} hops)")
    return RefineResponse.from_result(result)


@router.post("/catalog/reload", response_model=CatalogReloadResponse)
def reload_catalog(request: Request) -> CatalogReloadResponse:
    """
    Reload the catalog snapshot.

    Cached search results are invalidated by the version change.
    """
    previous = request.app.state.catalog
    try:
        catalog = load_app_catalog(request.app.state.engine, force_reload=True)
    except CatalogError as e:
        logger.error(f"Catalog reload failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    request.app.state.catalog = catalog
    request.app.state.search = build_search(request.app.state.executor, catalog)
    logger.info(f"Catalog reloaded: {previous.version} -> {catalog.version}")
    return CatalogReloadResponse(
        version=catalog.version,
        tables=len(catalog.tables),
        previous_version=previous.version,
    )
