"""
Pydantic schemas for request/response models.
"""

from app.schemas.responses import (
    ErrorResponse,
    HealthResponse,
    ProcessResponse,
    QueueStatusResponse,
    ReadinessResponse,
)

__all__ = [
    "ProcessResponse",
    "ErrorResponse",
    "HealthResponse",
    "ReadinessResponse",
    "QueueStatusResponse",
]
