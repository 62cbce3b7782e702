"""
Common Schemas
Shared Pydantic models for list and error responses
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Generic, TypeVar

T = TypeVar('T')


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Generic paginated response model

    Used for list endpoints that support pagination
    """
    items: List[T] = Field(..., description="List of items for current page")
    total: int = Field(..., description="Total number of items across all pages")
    page: int = Field(..., description="Current page number (1-based)")
    page_size: int = Field(..., description="Number of items per page")
    total_pages: int = Field(..., description="Total number of pages")


class ErrorResponse(BaseModel):
    """
    Standard error response model
    """
    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    field: Optional[str] = Field(None, description="Offending field, when known")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "error": "validation_error",
            "message": "Posting accounts not set: inventory out account",
            "field": "accounts"
        }
    })


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
