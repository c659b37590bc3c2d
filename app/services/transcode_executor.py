"""
Transcode Executor - FFmpeg logo overlay rendering.

Builds one ffmpeg invocation that scales the logo, composites it over the
video, re-encodes video to H.264 and copies audio untouched, with the moov
atom moved to the front (+faststart) so outputs stream in browsers.
"""

import logging
import os
import re
from typing import Optional

from app.config import PipelineConfig
from app.exceptions import TranscodeFailed, TranscodeTimeout
from app.services.overlay_planner import OverlayPlan
from app.services.process_runner import (
    ProcessLaunchError,
    ProcessResult,
    ProcessTimeout,
    run_process,
)

logger = logging.getLogger(__name__)


# Paths in ffmpeg diagnostics, absolute or relative, are reduced to their file name
_PATH_PATTERN = re.compile(r"(?:[A-Za-z]:)?(?:[^\\/\s'\":,]*[\\/])+([^\\/\s'\":,]+)")


def sanitize_stderr(stderr: bytes, max_chars: int) -> str:
    """
    Turn raw ffmpeg stderr into a short excerpt safe to show a client.

    Keeps the tail (ffmpeg prints the fatal error last), strips directory
    components from paths and truncates to max_chars.
    """
    text = stderr.decode("utf-8", errors="replace").strip()
    text = _PATH_PATTERN.sub(r"\1", text)
    text = " | ".join(line.strip() for line in text.splitlines() if line.strip())
    if len(text) > max_chars:
        text = "..." + text[-max(0, max_chars - 3):]
    return text


class TranscodeExecutor:
    """
    Runs the overlay/composite ffmpeg command.

    Features:
    - Argument-vector invocation (no shell)
    - Wall-clock timeout with forced kill
    - Capped diagnostic capture
    - Never overwrites an existing output file (-n)
    """

    def __init__(self, config: PipelineConfig):
        self.config = config

    def build_command(
        self,
        video_path: str,
        logo_path: str,
        plan: OverlayPlan,
        output_path: str,
    ) -> list[str]:
        """Build the ffmpeg argument vector for one overlay job."""
        filter_graph = (
            f"[1:v]{plan.scale_filter}[logo];"
            f"[0:v][logo]{plan.overlay_filter}[out]"
        )
        return [
            self.config.ffmpeg_path,
            "-hide_banner",
            "-nostdin",
            "-loglevel", "error",
            "-n",
            "-i", video_path,
            "-i", logo_path,
            "-filter_complex", filter_graph,
            "-map", "[out]",
            "-map", "0:a?",
            "-c:v", "libx264",
            "-preset", self.config.ffmpeg_preset,
            "-crf", str(self.config.ffmpeg_crf),
            "-pix_fmt", "yuv420p",
            "-c:a", "copy",
            "-movflags", "+faststart",
            output_path,
        ]

    async def execute(
        self,
        video_path: str,
        logo_path: str,
        plan: OverlayPlan,
        output_path: str,
        job_id: Optional[str] = None,
    ) -> ProcessResult:
        """
        Render the overlay into output_path.

        Raises:
            TranscodeTimeout: ffmpeg ran past the configured timeout (it has been killed)
            TranscodeFailed: Non-zero exit, launch failure or missing output
        """
        prefix = f"[{job_id}] " if job_id else ""
        cmd = self.build_command(video_path, logo_path, plan, output_path)

        logger.info(
            f"{prefix}Rendering overlay: {plan.position.value}, "
            f"{plan.rendered_width}x{plan.rendered_height} at ({plan.x}, {plan.y})"
        )

        try:
            result = await run_process(
                cmd,
                timeout_seconds=self.config.transcode_timeout_seconds,
                max_output_bytes=self.config.max_process_output_bytes,
            )
        except ProcessTimeout:
            logger.error(
                f"{prefix}FFmpeg timed out after {self.config.transcode_timeout_seconds:g}s"
            )
            raise TranscodeTimeout(self.config.transcode_timeout_seconds)
        except ProcessLaunchError as e:
            logger.error(f"{prefix}{e}")
            raise TranscodeFailed(None, "video processing tool is unavailable")

        if result.returncode != 0:
            excerpt = sanitize_stderr(result.stderr, self.config.stderr_excerpt_chars)
            logger.error(f"{prefix}FFmpeg failed with exit code {result.returncode}: {excerpt}")
            raise TranscodeFailed(result.returncode, excerpt)

        if not os.path.isfile(output_path):
            raise TranscodeFailed(result.returncode, "output file not created")

        file_size = os.path.getsize(output_path)
        logger.info(
            f"{prefix}Overlay rendered: {os.path.basename(output_path)} "
            f"({file_size / 1024 / 1024:.1f} MB in {result.elapsed_seconds:.1f}s)"
        )
        return result
