"""
Error taxonomy for the overlay pipeline.

Every stage raises a subclass of OverlayError. The pipeline converts these into
a structured failure result (machine-readable kind + human-readable message);
anything else is treated as an internal error and propagates.
"""

from typing import Optional


class OverlayError(Exception):
    """Base exception for all overlay pipeline errors."""

    kind: str = "InternalError"
    message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.__class__.message
        super().__init__(self.message)


class InvalidFormat(OverlayError):
    """Uploaded file extension or MIME type is not accepted for its role."""

    kind = "InvalidFormat"
    message = "Unsupported file format"

    def __init__(self, role: str, accepted: list[str], message: Optional[str] = None):
        self.role = role
        self.accepted = list(accepted)
        super().__init__(
            message
            or f"Invalid {role} format. Accepted formats: {', '.join(self.accepted)}"
        )


class FileTooLarge(OverlayError):
    """Uploaded file exceeds the size limit for its role."""

    kind = "FileTooLarge"
    message = "File too large"

    def __init__(self, role: str, limit_bytes: int):
        self.role = role
        self.limit_bytes = limit_bytes
        super().__init__(
            f"The {role} file exceeds the maximum size of {_format_bytes(limit_bytes)}"
        )


class ProbeFailed(OverlayError):
    """Media inspection failed or produced unusable output."""

    kind = "ProbeFailed"
    message = "Could not read media file"

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"Could not read media file: {cause}")


class DurationExceeded(OverlayError):
    """Video is longer than the configured maximum."""

    kind = "DurationExceeded"

    def __init__(self, duration_seconds: float, max_seconds: float):
        self.duration_seconds = duration_seconds
        self.max_seconds = max_seconds
        super().__init__(
            f"Video exceeds max duration of {max_seconds:g} seconds "
            f"(got {duration_seconds:.1f} seconds)"
        )


class InvalidPosition(OverlayError):
    """Requested logo position is not one of the supported corners."""

    kind = "InvalidPosition"

    def __init__(self, value: object, accepted: list[str]):
        self.value = value
        super().__init__(
            f"Invalid logo position {value!r}. Accepted positions: {', '.join(accepted)}"
        )


class InvalidSize(OverlayError):
    """Requested logo size is outside (0, 100] or geometry is degenerate."""

    kind = "InvalidSize"
    message = "Logo size must be greater than 0 and at most 100 percent of the video width"


class TranscodeFailed(OverlayError):
    """ffmpeg exited non-zero or did not produce an output file."""

    kind = "TranscodeFailed"

    def __init__(self, exit_code: Optional[int], stderr_excerpt: str = ""):
        self.exit_code = exit_code
        self.stderr_excerpt = stderr_excerpt
        detail = f": {stderr_excerpt}" if stderr_excerpt else ""
        super().__init__(f"Error during video processing (exit code {exit_code}){detail}")


class TranscodeTimeout(OverlayError):
    """ffmpeg did not finish within the wall-clock timeout and was killed."""

    kind = "Timeout"

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Video processing timed out after {timeout_seconds:g} seconds")


class CleanupFailed(OverlayError):
    """A job artifact could not be removed. Logged, never surfaced."""

    kind = "CleanupFailed"

    def __init__(self, path: str, cause: str):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to remove {path}: {cause}")


def _format_bytes(value: int) -> str:
    if value >= 1024 * 1024:
        return f"{value / (1024 * 1024):g} MB"
    if value >= 1024:
        return f"{value / 1024:g} KB"
    return f"{value} bytes"
