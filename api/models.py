"""
API response schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """Error body carrying a single message."""
    message: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")


class ErrorsResponse(BaseModel):
    """Validation error body."""
    errors: Union[List[str], Dict[str, List[str]]] = Field(
        ..., description="Parameter messages, or messages keyed by field"
    )


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")


ERROR_RESPONSES = {
    400: {"model": ErrorsResponse, "description": "Invalid parameters or attributes"},
    404: {"model": MessageResponse, "description": "Record not found"},
    500: {"model": MessageResponse, "description": "Internal server error"},
}
