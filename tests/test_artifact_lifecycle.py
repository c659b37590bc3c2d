"""
Unit tests for job artifact ownership and cleanup.
"""

import os
import re
import time

import pytest

from app.services.artifact_lifecycle import (
    OverlayJob,
    generate_job_token,
    normalize_extension,
    remove_artifact,
    sweep_stale_inputs,
)


@pytest.fixture
def job(upload_dir):
    return OverlayJob(str(upload_dir), ".mp4", ".png", "mp4")


def _touch_all(job):
    for path in job.artifacts:
        with open(path, "wb") as f:
            f.write(b"data")


class TestNaming:
    """Tests for job tokens and file names."""

    def test_tokens_are_unique(self):
        tokens = {generate_job_token() for _ in range(500)}
        assert len(tokens) == 500

    def test_output_name_convention(self, job):
        assert re.fullmatch(r"output-\d+-[0-9a-f]{12}\.mp4", job.output_name)
        assert job.output_path == os.path.join(job.directory, job.output_name)

    def test_paths_share_token(self, job):
        for path in job.artifacts:
            assert job.token in os.path.basename(path)

    def test_jobs_never_share_paths(self, upload_dir):
        first = OverlayJob(str(upload_dir), ".mp4", ".png", "mp4")
        second = OverlayJob(str(upload_dir), ".mp4", ".png", "mp4")
        assert not set(first.artifacts) & set(second.artifacts)

    @pytest.mark.parametrize(
        "filename,expected",
        [("clip.MP4", ".mp4"), ("../../etc/passwd.png", ".png"), ("noext", ""), (None, "")],
    )
    def test_normalize_extension(self, filename, expected):
        assert normalize_extension(filename) == expected


class TestFinalize:
    """Tests for OverlayJob cleanup."""

    def test_success_keeps_output(self, job):
        _touch_all(job)
        with job:
            job.mark_succeeded()
        assert not os.path.exists(job.video_path)
        assert not os.path.exists(job.logo_path)
        assert os.path.exists(job.output_path)

    def test_failure_removes_everything(self, job):
        _touch_all(job)
        with job:
            pass
        for path in job.artifacts:
            assert not os.path.exists(path)

    def test_exception_removes_everything_and_propagates(self, job):
        _touch_all(job)
        with pytest.raises(RuntimeError):
            with job:
                job.mark_succeeded()
                raise RuntimeError("boom")
        for path in job.artifacts:
            assert not os.path.exists(path)

    def test_missing_files_are_fine(self, job):
        with job:
            pass
        assert job.finalized

    def test_finalize_runs_once(self, job, mocker):
        remove = mocker.patch("app.services.artifact_lifecycle.remove_artifact", return_value=True)
        job.finalize(succeeded=False)
        job.finalize(succeeded=False)
        with job:
            pass
        assert remove.call_count == 3

    def test_adopts_existing_paths(self, upload_dir):
        video = upload_dir / "stored-video.mp4"
        video.write_bytes(b"v")
        job = OverlayJob(str(upload_dir), ".mp4", ".png", "mp4", video_path=str(video))
        job.finalize(succeeded=True)
        assert not video.exists()


class TestRemoveArtifact:
    """Tests for remove_artifact."""

    def test_missing_file(self, upload_dir):
        assert remove_artifact(str(upload_dir / "gone.mp4")) is True

    def test_failure_is_logged_not_raised(self, upload_dir, mocker, caplog):
        mocker.patch("app.services.artifact_lifecycle.os.remove", side_effect=PermissionError("denied"))
        assert remove_artifact(str(upload_dir / "locked.mp4")) is False
        assert "CleanupFailed" in caplog.text


def _age(path, seconds):
    past = time.time() - seconds
    os.utime(path, (past, past))


class TestSweep:
    """Tests for sweep_stale_inputs."""

    def test_removes_old_inputs_only(self, upload_dir):
        for name in ("video-1-a.mp4", "logo-1-a.png", "output-1-a.mp4"):
            (upload_dir / name).write_bytes(b"data")
            _age(upload_dir / name, 3600)

        assert sweep_stale_inputs(str(upload_dir), older_than_seconds=900) == 2
        assert sorted(os.listdir(upload_dir)) == ["output-1-a.mp4"]

    def test_live_job_inputs_survive(self, job):
        """Test that another worker's in-flight inputs are left alone."""
        _touch_all(job)

        assert sweep_stale_inputs(job.directory, older_than_seconds=900) == 0
        assert os.path.exists(job.video_path)
        assert os.path.exists(job.logo_path)

    def test_mixed_ages(self, job):
        _touch_all(job)
        stale = os.path.join(job.directory, "video-1-old.mov")
        with open(stale, "wb") as f:
            f.write(b"v")
        _age(stale, 3600)

        assert sweep_stale_inputs(job.directory, older_than_seconds=900) == 1
        assert not os.path.exists(stale)
        assert os.path.exists(job.video_path)

    def test_missing_directory(self, tmp_path):
        assert sweep_stale_inputs(str(tmp_path / "missing"), older_than_seconds=900) == 0
