"""
FastAPI application entry point for the logo overlay service.

Accepts a video and a logo, overlays the logo at a chosen corner and size
with FFmpeg, and serves the composited video from /uploads.
"""

import asyncio
import logging
import os
import shutil
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.config import get_settings
from app.routers import health, overlay
from app.services.artifact_lifecycle import sweep_stale_inputs
from app.services.overlay_pipeline import OverlayPipeline

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.
    Builds the overlay pipeline and the job semaphore on startup.
    """
    logger.info("Starting logo overlay service...")

    os.makedirs(settings.upload_directory, exist_ok=True)
    logger.info(f"Upload directory: {settings.upload_directory}")

    removed = sweep_stale_inputs(
        settings.upload_directory, older_than_seconds=settings.stale_input_age_seconds
    )
    if removed:
        logger.info(f"Removed {removed} leftover upload(s) from a previous run")

    # Limits how many overlay jobs can run simultaneously
    app.state.job_semaphore = asyncio.Semaphore(settings.max_concurrent_jobs)
    logger.info(f"Max concurrent jobs: {settings.max_concurrent_jobs}")

    app.state.overlay_pipeline = OverlayPipeline(settings.get_pipeline_config())

    _verify_external_tools()

    logger.info("Logo overlay service ready to accept requests.")

    yield

    logger.info("Shutting down logo overlay service...")
    app.state.overlay_pipeline = None
    app.state.job_semaphore = None
    logger.info("Shutdown complete")


def _verify_external_tools():
    """Verify that required external tools are available."""
    tools = {
        settings.ffmpeg_path: "FFmpeg for overlay rendering",
        settings.ffprobe_path: "FFprobe for media inspection",
    }

    for tool, description in tools.items():
        if shutil.which(tool):
            logger.info(f"✓ {description} available")
        else:
            logger.warning(f"✗ {description} NOT FOUND - requests will fail")


# Create FastAPI application
app = FastAPI(
    title="Logo Overlay Service",
    description="""
Overlay a logo onto a video.

## Usage

1. `POST /process` with multipart fields `video`, `logo`, `logoPosition`
   (top-left, top-right, bottom-left, bottom-right) and `logoSize`
   (percent of the video width).
2. Download the result from the returned `output_url` (`/uploads/<name>`).
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(overlay.router, tags=["Overlay"])

# Outputs are served from the shared upload directory
app.mount(
    "/uploads",
    StaticFiles(directory=settings.upload_directory, check_dir=False),
    name="uploads",
)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "service": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }
