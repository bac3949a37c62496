"""
API schemas for request/response models
"""

from src.api.schemas.refine import (
    CatalogReloadResponse,
    ErrorPayload,
    HealthResponse,
    HopPayload,
    RefineRequest,
    RefineResponse,
)

__all__ = [
    "CatalogReloadResponse",
    "ErrorPayload",
    "HealthResponse",
    "HopPayload",
    "RefineRequest",
    "RefineResponse",
]
