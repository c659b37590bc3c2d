"""
Configuration module using Pydantic Settings for environment variable management.

Every limit the pipeline enforces is exposed as an environment variable so a
deployment can tune it. The pipeline itself never reads settings directly: it
receives an immutable PipelineConfig built from them.
"""

from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class PipelineConfig:
    """Explicit limits and tool settings for one overlay pipeline instance."""

    upload_directory: str = "uploads"

    # External tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Admission control
    video_extensions: tuple[str, ...] = (".mp4", ".mov")
    logo_extensions: tuple[str, ...] = (".png", ".webp")
    video_mime_types: tuple[str, ...] = ("video/mp4", "video/quicktime")
    logo_mime_types: tuple[str, ...] = ("image/png", "image/webp")
    max_video_size_bytes: int = 30 * 1024 * 1024
    max_logo_size_bytes: int = 1 * 1024 * 1024
    max_video_duration_seconds: float = 300.0

    # Process bounds
    probe_timeout_seconds: float = 30.0
    transcode_timeout_seconds: float = 300.0
    max_process_output_bytes: int = 1024 * 1024
    stderr_excerpt_chars: int = 500

    # Composition / encoding
    overlay_margin: int = 10
    output_extension: str = "mp4"
    ffmpeg_preset: str = "ultrafast"
    ffmpeg_crf: int = 28


class Settings(BaseSettings):
    """
    Application settings.

    Loaded from environment variables (or a .env file). Field names map to
    upper-case variables, e.g. MAX_VIDEO_DURATION_SECONDS=3600.
    """

    # Application
    app_name: str = "logo-overlay-service"
    debug: bool = False
    log_level: str = "INFO"

    # Storage
    upload_directory: str = "uploads"

    # External tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Accepted formats (JSON lists in the environment)
    video_extensions: list[str] = [".mp4", ".mov"]
    logo_extensions: list[str] = [".png", ".webp"]
    video_mime_types: list[str] = ["video/mp4", "video/quicktime"]
    logo_mime_types: list[str] = ["image/png", "image/webp"]

    # Limits
    max_video_size_bytes: int = 30 * 1024 * 1024  # 30 MB
    max_logo_size_bytes: int = 1 * 1024 * 1024  # 1 MB
    max_video_duration_seconds: float = 300.0  # 5 minutes

    # Process bounds
    probe_timeout_seconds: float = 30.0
    transcode_timeout_seconds: float = 300.0
    max_process_output_bytes: int = 1024 * 1024
    stderr_excerpt_chars: int = 500

    # Composition / encoding
    overlay_margin: int = 10
    output_extension: str = "mp4"
    ffmpeg_preset: str = "ultrafast"
    ffmpeg_crf: int = 28

    # HTTP layer
    max_concurrent_jobs: int = 2
    cors_origins: list[str] = ["*"]
    disconnect_poll_seconds: float = 0.5

    # Startup sweep: inputs untouched for longer than this belong to no live job
    stale_input_age_seconds: float = 900.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def get_pipeline_config(self) -> PipelineConfig:
        """Build the immutable PipelineConfig from settings."""
        return PipelineConfig(
            upload_directory=self.upload_directory,
            ffmpeg_path=self.ffmpeg_path,
            ffprobe_path=self.ffprobe_path,
            video_extensions=tuple(ext.lower() for ext in self.video_extensions),
            logo_extensions=tuple(ext.lower() for ext in self.logo_extensions),
            video_mime_types=tuple(self.video_mime_types),
            logo_mime_types=tuple(self.logo_mime_types),
            max_video_size_bytes=self.max_video_size_bytes,
            max_logo_size_bytes=self.max_logo_size_bytes,
            max_video_duration_seconds=self.max_video_duration_seconds,
            probe_timeout_seconds=self.probe_timeout_seconds,
            transcode_timeout_seconds=self.transcode_timeout_seconds,
            max_process_output_bytes=self.max_process_output_bytes,
            stderr_excerpt_chars=self.stderr_excerpt_chars,
            overlay_margin=self.overlay_margin,
            output_extension=self.output_extension.lstrip("."),
            ffmpeg_preset=self.ffmpeg_preset,
            ffmpeg_crf=self.ffmpeg_crf,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
