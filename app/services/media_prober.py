"""
Media Prober - reads duration and dimensions with ffprobe.

ffprobe is treated as untrusted and occasionally hanging: it runs through the
bounded process runner with its own timeout and output cap.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from app.config import PipelineConfig
from app.exceptions import ProbeFailed
from app.services.process_runner import ProcessLaunchError, ProcessTimeout, run_process

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaMetadata:
    """Metadata extracted from a media file. Valid for the lifetime of one job."""

    duration_seconds: Optional[float]
    width: int
    height: int


class MediaProber:
    """Wraps ffprobe for videos (duration + size) and images (size only)."""

    def __init__(self, config: PipelineConfig):
        self.config = config

    def build_command(self, path: str) -> list[str]:
        return [
            self.config.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            path,
        ]

    async def probe(self, path: str, require_duration: bool = True) -> MediaMetadata:
        """
        Probe a media file.

        Args:
            path: Local file path
            require_duration: Fail if no duration can be read (videos)

        Returns:
            MediaMetadata with duration (None for images) and dimensions

        Raises:
            ProbeFailed: Tool failure, timeout, unparsable output or unreadable file
        """
        if not os.path.isfile(path):
            raise ProbeFailed("file not found")
        if not os.access(path, os.R_OK):
            raise ProbeFailed("file is not readable")

        try:
            result = await run_process(
                self.build_command(path),
                timeout_seconds=self.config.probe_timeout_seconds,
                max_output_bytes=self.config.max_process_output_bytes,
            )
        except ProcessTimeout:
            raise ProbeFailed(
                f"ffprobe timed out after {self.config.probe_timeout_seconds:g} seconds"
            )
        except ProcessLaunchError as e:
            logger.error(f"ffprobe could not be started: {e}")
            raise ProbeFailed("media inspection tool is unavailable")

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            logger.warning(f"ffprobe failed for {os.path.basename(path)}: {stderr[-300:]}")
            raise ProbeFailed(f"ffprobe exited with code {result.returncode}")

        metadata = parse_probe_output(result.stdout, require_duration=require_duration)
        logger.info(
            f"Probed {os.path.basename(path)}: {metadata.width}x{metadata.height}, "
            f"duration={metadata.duration_seconds}"
        )
        return metadata


def parse_probe_output(raw: bytes, require_duration: bool = True) -> MediaMetadata:
    """
    Parse ffprobe JSON (-show_format -show_streams) into MediaMetadata.

    Duration comes from format.duration, falling back to the video stream's
    own duration. Dimensions come from the first video stream.
    """
    try:
        data = json.loads(raw.decode("utf-8", errors="replace") or "null")
    except json.JSONDecodeError as e:
        raise ProbeFailed(f"unparsable ffprobe output ({e.msg})")

    if not isinstance(data, dict):
        raise ProbeFailed("unparsable ffprobe output")

    streams = data.get("streams") or []
    video_stream = next(
        (s for s in streams if isinstance(s, dict) and s.get("codec_type") == "video"),
        None,
    )
    if video_stream is None:
        raise ProbeFailed("no video stream found")

    try:
        width = int(video_stream.get("width") or 0)
        height = int(video_stream.get("height") or 0)
    except (TypeError, ValueError):
        raise ProbeFailed("invalid frame dimensions")
    if width <= 0 or height <= 0:
        raise ProbeFailed("invalid frame dimensions")

    duration = _parse_duration((data.get("format") or {}).get("duration"))
    if duration is None:
        duration = _parse_duration(video_stream.get("duration"))
    if duration is None and require_duration:
        raise ProbeFailed("duration unavailable")

    return MediaMetadata(duration_seconds=duration, width=width, height=height)


def _parse_duration(value) -> Optional[float]:
    # ffprobe reports "N/A" for streams without a known duration
    if value in (None, "", "N/A"):
        return None
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    if duration != duration or duration < 0:
        return None
    return duration
