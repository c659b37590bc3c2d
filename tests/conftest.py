"""
Pytest configuration and fixtures.
"""

import os
import sys
from dataclasses import replace

import pytest

# Add app directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.config import PipelineConfig  # noqa: E402
from app.services.asset_validator import AssetRole, UploadedAsset  # noqa: E402
from app.services.media_prober import MediaMetadata  # noqa: E402


class FakeProber:
    """Stands in for ffprobe. Returns fixed metadata per role and records calls."""

    def __init__(self, video=None, logo=None, error=None):
        self.video = video or MediaMetadata(duration_seconds=10.0, width=1920, height=1080)
        self.logo = logo or MediaMetadata(duration_seconds=None, width=400, height=200)
        self.error = error
        self.calls = []

    async def probe(self, path, require_duration=True):
        self.calls.append(path)
        if self.error is not None:
            raise self.error
        return self.video if require_duration else self.logo


class FakeExecutor:
    """Stands in for ffmpeg. Writes a small output file unless told to fail."""

    def __init__(self, error=None, write_partial=True):
        self.error = error
        self.write_partial = write_partial
        self.calls = []

    async def execute(self, video_path, logo_path, plan, output_path, job_id=None):
        self.calls.append(
            {
                "video_path": video_path,
                "logo_path": logo_path,
                "plan": plan,
                "output_path": output_path,
            }
        )
        if self.error is not None:
            if self.write_partial:
                with open(output_path, "wb") as f:
                    f.write(b"partial")
            raise self.error
        with open(output_path, "wb") as f:
            f.write(b"\x00\x00\x00\x18ftypmp42")


@pytest.fixture
def upload_dir(tmp_path):
    """Shared upload directory for one test."""
    directory = tmp_path / "uploads"
    directory.mkdir()
    return directory


@pytest.fixture
def pipeline_config(upload_dir):
    """Pipeline config pointing at the test's upload directory."""
    return PipelineConfig(upload_directory=str(upload_dir))


@pytest.fixture
def make_config(pipeline_config):
    """Build a variant of the default config for one scenario."""

    def _make(**overrides):
        return replace(pipeline_config, **overrides)

    return _make


@pytest.fixture
def make_asset(upload_dir):
    """Write a file of the given size into the upload directory and describe it."""

    counter = {"n": 0}

    def _make(role, extension, size_bytes=1024, content_type=None):
        counter["n"] += 1
        path = upload_dir / f"{role.value}-test{counter['n']}{extension}"
        path.write_bytes(b"\x00" * size_bytes)
        return UploadedAsset(
            path=str(path),
            original_extension=extension,
            size_bytes=size_bytes,
            role=role,
            content_type=content_type,
        )

    return _make


@pytest.fixture
def video_asset(make_asset):
    """2 MB MP4 upload."""
    return make_asset(AssetRole.VIDEO, ".mp4", size_bytes=2 * 1024 * 1024)


@pytest.fixture
def logo_asset(make_asset):
    """50 KB PNG upload."""
    return make_asset(AssetRole.LOGO, ".png", size_bytes=50 * 1024)


@pytest.fixture
def fake_prober():
    return FakeProber()


@pytest.fixture
def fake_executor():
    return FakeExecutor()
