"""
Overlay API endpoints.

The router is thin plumbing: it admits the request through the job semaphore,
streams the multipart uploads into the job's registered paths and maps the
pipeline's tagged result onto an HTTP response.
"""

import asyncio
import logging
from typing import Awaitable, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.schemas.responses import ErrorResponse, ProcessResponse, QueueStatusResponse
from app.services.artifact_lifecycle import OverlayJob
from app.services.asset_validator import AssetRole, UploadedAsset
from app.services.overlay_pipeline import JobResult, OverlayPipeline
from app.services.upload_store import store_upload

logger = logging.getLogger(__name__)

router = APIRouter()

# Client errors are 4xx, failures of the tools themselves are 5xx
STATUS_BY_KIND = {
    "InvalidFormat": 400,
    "InvalidPosition": 400,
    "InvalidSize": 400,
    "DurationExceeded": 400,
    "FileTooLarge": 413,
    "ProbeFailed": 422,
    "TranscodeFailed": 500,
    "Timeout": 504,
}

# Status code logged for requests whose client went away (never delivered)
CLIENT_CLOSED_REQUEST = 499

# Admission counters for the status endpoint
active_jobs: int = 0
waiting_jobs: int = 0


def get_pipeline(request: Request) -> OverlayPipeline:
    """Get the overlay pipeline from app state."""
    pipeline = getattr(request.app.state, "overlay_pipeline", None)
    if pipeline is None:
        # Fallback: build one from settings
        pipeline = OverlayPipeline(get_settings().get_pipeline_config())
        request.app.state.overlay_pipeline = pipeline
    return pipeline


def get_semaphore(request: Request) -> asyncio.Semaphore:
    """Get job semaphore from app state."""
    semaphore = getattr(request.app.state, "job_semaphore", None)
    if semaphore is None:
        semaphore = asyncio.Semaphore(get_settings().max_concurrent_jobs)
        request.app.state.job_semaphore = semaphore
    return semaphore


async def run_until_disconnect(
    request: Request,
    job: Awaitable[JobResult],
    poll_seconds: float,
) -> Optional[JobResult]:
    """
    Run a job while watching for client disconnect.

    Returns None if the client went away first; the job task is cancelled,
    which kills any running ffmpeg/ffprobe and cleans up the job's files.
    """
    job_task = asyncio.ensure_future(job)

    async def watch_disconnect() -> None:
        while not await request.is_disconnected():
            await asyncio.sleep(poll_seconds)

    watcher = asyncio.create_task(watch_disconnect())
    try:
        await asyncio.wait({job_task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not job_task.done():
            job_task.cancel()
            await asyncio.gather(job_task, return_exceptions=True)

    if job_task.cancelled():
        return None
    return job_task.result()


def _result_response(result: JobResult) -> JSONResponse:
    if result.success:
        body = ProcessResponse(
            output=result.output_file_name,
            output_file_name=result.output_file_name,
            output_url=f"/uploads/{result.output_file_name}",
        )
        return JSONResponse(status_code=200, content=body.model_dump())

    body = ErrorResponse(error_kind=result.error_kind, message=result.message)
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(result.error_kind, 500),
        content=body.model_dump(),
    )


@router.get("/status", response_model=QueueStatusResponse)
async def get_queue_status() -> QueueStatusResponse:
    """Get the current admission state."""
    settings = get_settings()
    return QueueStatusResponse(
        max_concurrent_jobs=settings.max_concurrent_jobs,
        active_jobs=active_jobs,
        waiting_jobs=waiting_jobs,
    )


@router.post(
    "/process",
    response_model=ProcessResponse,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def process_overlay(
    http_request: Request,
    video: UploadFile = File(..., description="Video file (MP4 or MOV)"),
    logo: UploadFile = File(..., description="Logo image (PNG or WEBP)"),
    logo_position: str = Form(
        "top-left",
        alias="logoPosition",
        description="top-left, top-right, bottom-left or bottom-right",
    ),
    logo_size: str = Form(
        "20",
        alias="logoSize",
        description="Logo width as a percentage of the video width, in (0, 100]",
    ),
    pipeline: OverlayPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """
    Overlay a logo onto a video.

    Jobs run with concurrency control; requests beyond the limit wait for a
    slot. The response carries the output file name, served from /uploads.
    """
    settings = get_settings()
    config = pipeline.config
    semaphore = get_semaphore(http_request)

    job = pipeline.open_job(video.filename, logo.filename)
    logger.info(
        f"[{job.token}] Overlay request received: position={logo_position!r}, size={logo_size!r}"
    )

    async def intake(job: OverlayJob) -> tuple[UploadedAsset, UploadedAsset]:
        # A wrong format is reported as such, even when the file is also too large
        pipeline.validator.check_extension(AssetRole.VIDEO, job.video_extension)
        pipeline.validator.check_extension(AssetRole.LOGO, job.logo_extension)

        video_asset = await store_upload(
            video,
            job.video_path,
            AssetRole.VIDEO,
            job.video_extension,
            config.max_video_size_bytes,
            content_type=video.content_type,
        )
        logo_asset = await store_upload(
            logo,
            job.logo_path,
            AssetRole.LOGO,
            job.logo_extension,
            config.max_logo_size_bytes,
            content_type=logo.content_type,
        )
        return video_asset, logo_asset

    async def admitted_run() -> JobResult:
        global active_jobs, waiting_jobs
        waiting_jobs += 1
        admitted = False
        try:
            async with semaphore:
                waiting_jobs -= 1
                admitted = True
                active_jobs += 1
                try:
                    return await pipeline.run(job, logo_position, logo_size, intake)
                finally:
                    active_jobs -= 1
        finally:
            if not admitted:
                waiting_jobs -= 1
            # Cancelled before the pipeline took over the job
            job.finalize(succeeded=False)

    result = await run_until_disconnect(
        http_request, admitted_run(), settings.disconnect_poll_seconds
    )
    if result is None:
        logger.info(f"[{job.token}] Client disconnected, job cancelled")
        return JSONResponse(
            status_code=CLIENT_CLOSED_REQUEST,
            content=ErrorResponse(
                error_kind="Cancelled", message="Client disconnected"
            ).model_dump(),
        )

    return _result_response(result)
