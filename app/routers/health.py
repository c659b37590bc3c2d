"""
Health check endpoints for the overlay service.
"""

import os
import shutil

from fastapi import APIRouter

from app.config import get_settings
from app.schemas.responses import HealthResponse, ReadinessResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if the service is running.
    """
    return HealthResponse(
        status="healthy",
        version="1.0.0",
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check():
    """
    Readiness check endpoint.

    Ready when ffmpeg and ffprobe can be found and the upload directory
    is writable.
    """
    settings = get_settings()
    tools = {
        "ffmpeg": shutil.which(settings.ffmpeg_path) is not None,
        "ffprobe": shutil.which(settings.ffprobe_path) is not None,
    }
    directory = settings.upload_directory
    writable = os.path.isdir(directory) and os.access(directory, os.W_OK)

    return ReadinessResponse(
        ready=all(tools.values()) and writable,
        tools=tools,
        upload_directory_writable=writable,
    )
