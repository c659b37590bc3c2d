"""
Response schemas for the overlay API.
"""

from typing import Dict

from pydantic import BaseModel, Field


class ProcessResponse(BaseModel):
    """Successful overlay job."""

    success: bool = Field(default=True, description="Always true for a successful job")
    output: str = Field(..., description="Output file name (kept for older clients)")
    output_file_name: str = Field(..., description="Output file name, output-<token>.<ext>")
    output_url: str = Field(..., description="Relative URL the output is served from")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "output": "output-1760860800000-3f9a1c2b7d4e.mp4",
                "output_file_name": "output-1760860800000-3f9a1c2b7d4e.mp4",
                "output_url": "/uploads/output-1760860800000-3f9a1c2b7d4e.mp4",
            }
        }


class ErrorResponse(BaseModel):
    """Failed overlay job."""

    success: bool = Field(default=False, description="Always false for a failed job")
    error_kind: str = Field(..., description="Machine-readable error kind, e.g. 'InvalidFormat'")
    message: str = Field(..., description="Human-readable error message")

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "error_kind": "InvalidFormat",
                "message": "Invalid logo format. Accepted formats: PNG, WEBP",
            }
        }


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool = Field(..., description="Whether the service is ready to accept requests")
    tools: Dict[str, bool] = Field(..., description="Availability of external tools")
    upload_directory_writable: bool = Field(
        ..., description="Whether the shared upload directory is writable"
    )


class QueueStatusResponse(BaseModel):
    """Current admission state."""

    max_concurrent_jobs: int = Field(..., description="Jobs allowed to run at once")
    active_jobs: int = Field(..., description="Jobs currently running")
    waiting_jobs: int = Field(..., description="Jobs waiting for a slot")
