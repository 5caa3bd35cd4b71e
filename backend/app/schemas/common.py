"""
Common API Response Schemas

Standardized error responses shared by every endpoint.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response for all API errors.

    Error Codes:
        - VALIDATION_ERROR: Request or business validation failed (400/422)
        - INVALID_STATE: Operation not allowed in the current state (400)
        - DUPLICATE_ERROR: Duplicate resource (400)
        - NOT_FOUND: Resource not found (404)
        - CONFLICT: Resource conflict (409)
        - TRANSACTION_ABORTED: Ledger commit aborted, nothing applied (409)
        - DATABASE_ERROR: Database operation failed (500)
        - INTERNAL_ERROR: Unexpected internal error (500)

    Example:
        {
            "error": "INVALID_STATE",
            "message": "Report 12 is already approved",
            "details": {
                "current_state": "approved"
            },
            "timestamp": "2026-03-02T10:30:00Z"
        }
    """
    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional error context for debugging"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the error occurred (UTC)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "error": "NOT_FOUND",
                "message": "Stage with ID 123 not found",
                "details": {
                    "resource": "Stage",
                    "resource_id": "123"
                },
                "timestamp": "2026-03-02T10:30:00Z"
            }
        }


class ValidationErrorResponse(ErrorResponse):
    """Request validation failure with the offending fields listed."""
    error: str = Field(default="VALIDATION_ERROR", description="Always VALIDATION_ERROR")
    details: Dict[str, Any] = Field(
        ...,
        description="Validation error details with 'errors' list"
    )


# Shared `responses=` table for routers
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation or state error"},
    404: {"model": ErrorResponse, "description": "Resource not found"},
    409: {"model": ErrorResponse, "description": "Concurrent modification"},
    422: {"model": ValidationErrorResponse, "description": "Request validation failed"},
}
