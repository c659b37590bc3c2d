"""
Overlay Pipeline - orchestrates a single logo overlay job.

Stages run strictly in order, each gated on the previous one:

1. Intake (store uploads into the job's registered paths)
2. Request parsing (position + size, before any process is spawned)
3. Asset validation (extensions, MIME types, sizes)
4. Probe (video duration/dimensions, then logo dimensions)
5. Duration admission check
6. Overlay planning
7. Transcode

The job's artifact lifecycle wraps the whole sequence, so the filesystem is
clean on every exit path before a result is returned.
"""

import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from app.config import PipelineConfig
from app.exceptions import DurationExceeded, OverlayError
from app.services.artifact_lifecycle import OverlayJob, normalize_extension
from app.services.asset_validator import AssetValidator, UploadedAsset
from app.services.media_prober import MediaProber
from app.services.overlay_planner import (
    OverlayPlan,
    OverlayPlanner,
    OverlayPosition,
    parse_size_percent,
)
from app.services.transcode_executor import TranscodeExecutor

logger = logging.getLogger(__name__)


IntakeFn = Callable[[OverlayJob], Awaitable[tuple[UploadedAsset, UploadedAsset]]]


@dataclass(frozen=True)
class OverlayRequest:
    """A normalized, immutable overlay request."""

    video: UploadedAsset
    logo: UploadedAsset
    position: OverlayPosition
    size_percent: float

    @classmethod
    def build(
        cls,
        video: UploadedAsset,
        logo: UploadedAsset,
        position: Union[str, OverlayPosition],
        size_percent: Union[str, int, float],
    ) -> "OverlayRequest":
        """Parse raw position/size values. Raises InvalidPosition or InvalidSize."""
        return cls(
            video=video,
            logo=logo,
            position=OverlayPosition.parse(position),
            size_percent=parse_size_percent(size_percent),
        )


@dataclass(frozen=True)
class JobResult:
    """Terminal outcome of a job, as handed to the HTTP layer."""

    success: bool
    output_file_name: Optional[str] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def succeeded(cls, output_file_name: str) -> "JobResult":
        return cls(success=True, output_file_name=output_file_name)

    @classmethod
    def failed(cls, error: OverlayError) -> "JobResult":
        return cls(success=False, error_kind=error.kind, message=error.message)


class OverlayPipeline:
    """
    Validate -> probe -> plan -> execute, with guaranteed cleanup.

    All limits come from the PipelineConfig passed in; components can be
    swapped for tests.
    """

    def __init__(
        self,
        config: PipelineConfig,
        validator: Optional[AssetValidator] = None,
        prober: Optional[MediaProber] = None,
        planner: Optional[OverlayPlanner] = None,
        executor: Optional[TranscodeExecutor] = None,
    ):
        self.config = config
        self.validator = validator or AssetValidator(config)
        self.prober = prober or MediaProber(config)
        self.planner = planner or OverlayPlanner(margin=config.overlay_margin)
        self.executor = executor or TranscodeExecutor(config)

    def open_job(
        self,
        video_filename: Optional[str],
        logo_filename: Optional[str],
    ) -> OverlayJob:
        """Create a job with all of its artifact paths registered up front."""
        os.makedirs(self.config.upload_directory, exist_ok=True)
        job = OverlayJob(
            directory=self.config.upload_directory,
            video_extension=normalize_extension(video_filename),
            logo_extension=normalize_extension(logo_filename),
            output_extension=self.config.output_extension,
        )
        logger.info(f"[{job.token}] Job opened")
        return job

    async def run(
        self,
        job: OverlayJob,
        position: Union[str, OverlayPosition],
        size_percent: Union[str, int, float],
        intake: IntakeFn,
    ) -> JobResult:
        """
        Run one job to a terminal result.

        Pipeline errors become a failed JobResult. Unexpected exceptions and
        cancellation propagate, after the job's files have been cleaned up.
        """
        with job:
            try:
                video, logo = await intake(job)
                request = OverlayRequest.build(video, logo, position, size_percent)
                await self._process(job, request)
            except OverlayError as e:
                logger.warning(f"[{job.token}] Job failed with {e.kind}: {e.message}")
                return JobResult.failed(e)

            job.mark_succeeded()
            logger.info(f"[{job.token}] Job completed: {job.output_name}")
            return JobResult.succeeded(job.output_name)

    async def process(
        self,
        video: UploadedAsset,
        logo: UploadedAsset,
        position: Union[str, OverlayPosition],
        size_percent: Union[str, int, float],
    ) -> JobResult:
        """Run a job for files the caller has already stored. The job takes ownership of them."""
        os.makedirs(self.config.upload_directory, exist_ok=True)
        job = OverlayJob(
            directory=self.config.upload_directory,
            video_extension=video.original_extension,
            logo_extension=logo.original_extension,
            output_extension=self.config.output_extension,
            video_path=video.path,
            logo_path=logo.path,
        )

        async def adopt(_job: OverlayJob) -> tuple[UploadedAsset, UploadedAsset]:
            return video, logo

        return await self.run(job, position, size_percent, adopt)

    async def _process(self, job: OverlayJob, request: OverlayRequest) -> OverlayPlan:
        self.validator.validate_request(request.video, request.logo)

        video_meta = await self.prober.probe(request.video.path)
        max_duration = self.config.max_video_duration_seconds
        if video_meta.duration_seconds > max_duration:
            raise DurationExceeded(video_meta.duration_seconds, max_duration)

        logo_meta = await self.prober.probe(request.logo.path, require_duration=False)

        plan = self.planner.plan(
            video_width=video_meta.width,
            video_height=video_meta.height,
            logo_width=logo_meta.width,
            logo_height=logo_meta.height,
            position=request.position,
            size_percent=request.size_percent,
        )

        await self.executor.execute(
            request.video.path,
            request.logo.path,
            plan,
            job.output_path,
            job_id=job.token,
        )
        return plan
