"""
Pydantic models for API responses to improve OpenAPI documentation.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class Envelope(BaseModel):
    """Standard success envelope."""
    success: bool = Field(True, description="Operation success status")
    data: Optional[Any] = Field(None, description="Response payload")
    message: Optional[str] = Field(None, description="Human readable message")


class ErrorEnvelope(BaseModel):
    """Standard error envelope."""
    success: bool = Field(False, description="Always false for errors")
    error: str = Field(..., description="Error message", examples=["Validation failed"])
    code: Optional[str] = Field(None, description="Machine readable error code", examples=["VALIDATION_ERROR"])
    details: Optional[Union[Dict[str, List[str]], List[str]]] = Field(
        None, description="Field-level messages or extra context"
    )


class HealthCheckResponse(BaseModel):
    """Response model for the service health check."""
    success: bool = True
    status: str = Field(..., description="Service health status", examples=["healthy"])
    service: str = Field(..., description="Service name", examples=["flux-backend"])
    version: str = Field(..., description="Application version", examples=["1.0.0"])
    environment: str = Field(..., description="Current environment", examples=["production"])
    timestamp: str = Field(..., description="Current timestamp in ISO format")
    uptime_seconds: float = Field(..., description="Seconds since the process started")


class DatabaseHealthResponse(BaseModel):
    """Response model for the database health check."""
    success: bool
    status: str = Field(..., description="healthy, unhealthy or disabled", examples=["healthy"])
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str


ERROR_RESPONSES: Dict[Union[int, str], Dict[str, Any]] = {
    400: {"model": ErrorEnvelope, "description": "Validation failed"},
    401: {"model": ErrorEnvelope, "description": "Authentication required"},
    500: {"model": ErrorEnvelope, "description": "Internal server error"},
}


def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    """Wrap a payload in the success envelope."""
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body


def has_more(total: int, limit: int, offset: int) -> bool:
    """Whether items remain after the page starting at ``offset``."""
    return total > offset + limit


def paginated(
    items: List[Any],
    key: str,
    total: int,
    limit: int,
    offset: int,
    **extra: Any
) -> Dict[str, Any]:
    """Success envelope for one page of ``items`` stored under ``key``."""
    return ok({
        key: items,
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": has_more(total, limit, offset),
        **extra,
    })
