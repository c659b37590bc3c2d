"""
Artifact Lifecycle - ownership and cleanup of every file a job creates.

An OverlayJob knows all of its paths (uploaded video, uploaded logo, output)
from the moment it is opened, before any stage runs. Used as a context manager
it finalizes exactly once on exit:

    with job:
        ...                 # stages
        job.mark_succeeded()

Success keeps the output and removes the inputs; every other exit (error,
timeout, cancellation) removes the inputs and any partially written output.
"""

import logging
import os
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from app.exceptions import CleanupFailed

logger = logging.getLogger(__name__)


def generate_job_token() -> str:
    """Collision-resistant per-job token: unix millis plus a random suffix."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}"


def output_file_name(token: str, extension: str) -> str:
    return f"output-{token}.{extension.lstrip('.')}"


def normalize_extension(filename: Optional[str]) -> str:
    """Lower-cased extension of a client-supplied filename, e.g. ".mp4"."""
    return os.path.splitext(os.path.basename(filename or ""))[1].lower()


@dataclass
class TrackedArtifact:
    """A path owned by a job."""

    path: str
    keep_on_success: bool


def remove_artifact(path: str) -> bool:
    """
    Best-effort, idempotent delete.

    Returns True if the file is gone afterwards. A missing file counts as
    removed; other OS errors are logged as CleanupFailed and swallowed so
    they never mask the job's real outcome.
    """
    try:
        os.remove(path)
        logger.debug(f"Removed {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        error = CleanupFailed(path, str(e))
        logger.warning(f"{error.kind}: {error.message}")
        return False
    return True


def sweep_stale_inputs(directory: str, older_than_seconds: float) -> int:
    """
    Remove uploaded inputs left behind by a crashed process.

    The directory may be shared with other workers, so only inputs last
    modified more than older_than_seconds ago are removed. Pass a value above
    the longest a live job can hold its inputs. Outputs are never touched.
    """
    cutoff = time.time() - older_than_seconds
    if not os.path.isdir(directory):
        return 0

    removed = 0
    for name in os.listdir(directory):
        if not name.startswith(("video-", "logo-")):
            continue
        path = os.path.join(directory, name)
        try:
            if not os.path.isfile(path) or os.path.getmtime(path) >= cutoff:
                continue
        except OSError:
            # Removed by its own job in the meantime
            continue
        if remove_artifact(path):
            removed += 1
    return removed


class OverlayJob:
    """One overlay request's artifacts and terminal state."""

    def __init__(
        self,
        directory: str,
        video_extension: str,
        logo_extension: str,
        output_extension: str,
        token: Optional[str] = None,
        video_path: Optional[str] = None,
        logo_path: Optional[str] = None,
    ):
        self.token = token or generate_job_token()
        self.directory = directory
        self.video_extension = video_extension
        self.logo_extension = logo_extension

        # Files stored by the caller beforehand are adopted and owned from here on
        self.video_path = video_path or os.path.join(
            directory, f"video-{self.token}{video_extension}"
        )
        self.logo_path = logo_path or os.path.join(
            directory, f"logo-{self.token}{logo_extension}"
        )
        self.output_name = output_file_name(self.token, output_extension)
        self.output_path = os.path.join(directory, self.output_name)

        self._artifacts = [
            TrackedArtifact(self.video_path, keep_on_success=False),
            TrackedArtifact(self.logo_path, keep_on_success=False),
            TrackedArtifact(self.output_path, keep_on_success=True),
        ]
        self._succeeded = False
        self._finalized = False

    @property
    def artifacts(self) -> list[str]:
        return [artifact.path for artifact in self._artifacts]

    @property
    def finalized(self) -> bool:
        return self._finalized

    def mark_succeeded(self) -> None:
        self._succeeded = True

    def finalize(self, succeeded: Optional[bool] = None) -> None:
        """
        Remove the job's temporaries. Only the first call has any effect.

        Args:
            succeeded: Override the recorded outcome. Defaults to whether
                mark_succeeded() was called.
        """
        if self._finalized:
            return
        self._finalized = True
        if succeeded is None:
            succeeded = self._succeeded

        for artifact in self._artifacts:
            if succeeded and artifact.keep_on_success:
                continue
            remove_artifact(artifact.path)

        outcome = "succeeded" if succeeded else "failed"
        logger.info(f"[{self.token}] Job {outcome}, temporary files removed")

    def __enter__(self) -> "OverlayJob":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # Any exception (including cancellation) means the job failed
        self.finalize(succeeded=self._succeeded and exc_type is None)
