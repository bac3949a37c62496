"""
Refinement API request/response models
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from src.refinement.models import RefinementResult


class ErrorPayload(BaseModel):
    """Structured DBMS error the client already received"""
    message: str = Field(..., min_length=1, description="Primary error message")
    code: Optional[str] = Field(default=None, description="SQLSTATE or vendor code")
    position: Optional[int] = Field(default=None, ge=1, description="1-based offending position")


class RefineRequest(BaseModel):
    """
    Request to refine a failing query.

    Without `error` the query is executed once and refined only if it fails.
    """
    sql: str = Field(..., min_length=1, max_length=20000, description="SQL query to refine")
    error: Optional[ErrorPayload] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "sql": "SELECT dept FROM employees",
                    "error": {"message": "column \"dept\" does not exist", "code": "42703", "position": 8},
                }
            ]
        }
    }


class HopPayload(BaseModel):
    """One executed candidate"""
    depth: int
    category: str
    replacement: str
    sql: str
    outcome: str
    error: Optional[str] = None


class RefineResponse(BaseModel):
    """Outcome of a refinement session"""
    status: str
    corrected_sql: Optional[str] = None
    best_sql: str
    original_sql: str
    hops: int
    candidates_tried: int
    cache_hits: int = 0
    last_error: Optional[str] = None
    last_error_type: Optional[str] = None
    columns: List[str] = Field(default_factory=list)
    rows: List[List[Any]] = Field(default_factory=list)
    applied: List[Dict[str, str]] = Field(default_factory=list)
    trace: List[HopPayload] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: RefinementResult) -> "RefineResponse":
        return cls(**result.to_dict())


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    version: str
    catalog_version: Optional[str] = None
    cache_size: int = 0


class CatalogReloadResponse(BaseModel):
    """Catalog reload outcome"""
    version: str
    tables: int
    previous_version: Optional[str] = None
