"""
Asset Validator - admission checks on uploaded files.

Runs before any external process is spawned: a file with the wrong
extension/MIME type or an oversized file never reaches ffprobe.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.config import PipelineConfig
from app.exceptions import FileTooLarge, InvalidFormat

logger = logging.getLogger(__name__)

# Sent by curl and many mobile clients when they do not know the type
GENERIC_MIME_TYPES = ("application/octet-stream", "binary/octet-stream")


class AssetRole(str, Enum):
    """Role an uploaded file plays in the overlay job."""

    VIDEO = "video"
    LOGO = "logo"


@dataclass
class UploadedAsset:
    """A file stored on local disk for one job."""

    path: str
    original_extension: str
    size_bytes: int
    role: AssetRole
    content_type: Optional[str] = None


class AssetValidator:
    """Checks extensions, declared MIME types and sizes against per-role limits."""

    def __init__(self, config: PipelineConfig):
        self.config = config

    def _rules(self, role: AssetRole) -> tuple[tuple[str, ...], tuple[str, ...], int]:
        if role == AssetRole.VIDEO:
            return (
                self.config.video_extensions,
                self.config.video_mime_types,
                self.config.max_video_size_bytes,
            )
        return (
            self.config.logo_extensions,
            self.config.logo_mime_types,
            self.config.max_logo_size_bytes,
        )

    def check_extension(self, role: AssetRole, extension: Optional[str]) -> None:
        """Raise InvalidFormat unless the extension is allowed for the role."""
        extensions, _, _ = self._rules(role)
        extension = (extension or "").lower()
        if extension not in extensions:
            logger.info(f"Rejected {role.value}: extension {extension!r} not in {list(extensions)}")
            raise InvalidFormat(role.value, [ext.lstrip(".").upper() for ext in extensions])

    def validate(self, asset: UploadedAsset) -> None:
        """
        Validate a single stored asset.

        A generic or empty declared MIME type counts as undeclared, leaving
        the extension as the only format check.

        Raises:
            InvalidFormat: Extension (or declared MIME type) not allowed for the role
            FileTooLarge: File on disk is larger than the role's limit
        """
        extensions, mime_types, max_bytes = self._rules(asset.role)
        role = asset.role.value

        self.check_extension(asset.role, asset.original_extension)

        content_type = (asset.content_type or "").split(";")[0].strip().lower()
        if content_type and content_type not in GENERIC_MIME_TYPES:
            if mime_types and content_type not in mime_types:
                logger.info(f"Rejected {role}: MIME type {content_type!r} not in {list(mime_types)}")
                raise InvalidFormat(role, [ext.lstrip(".").upper() for ext in extensions])

        size = os.path.getsize(asset.path) if os.path.isfile(asset.path) else asset.size_bytes
        if size > max_bytes:
            logger.info(f"Rejected {role}: {size} bytes exceeds {max_bytes}")
            raise FileTooLarge(role, max_bytes)

    def validate_request(self, video: UploadedAsset, logo: UploadedAsset) -> None:
        """Validate the video, then the logo. Fails on the first problem."""
        self.validate(video)
        self.validate(logo)
