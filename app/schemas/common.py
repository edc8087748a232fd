"""
Common Pydantic schemas used across the application.
"""
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Schema for health check response."""
    success: bool = Field(..., description="Whether service is healthy")
    data: Dict[str, Any] = Field(..., description="Health check data")
    message: str = Field(..., description="Health check message")


class ErrorBody(BaseModel):
    """Body of an error response."""
    id: str = Field(..., description="Error id, also present in the logs")
    code: str = Field(..., description="Application error code, e.g. E1000")
    message: str = Field(..., description="Error message")
    timestamp: str = Field(..., description="ISO timestamp")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


class ErrorResponse(BaseModel):
    """Schema for error responses."""
    error: ErrorBody
