"""
Upload Store - streams incoming uploads into a job's registered paths.

The write aborts as soon as the role's size limit is crossed, so an oversized
upload never fills the shared upload directory.
"""

import asyncio
import logging
import os
from typing import Any, Optional, Protocol

from app.exceptions import FileTooLarge
from app.services.asset_validator import AssetRole, UploadedAsset

logger = logging.getLogger(__name__)


_CHUNK_SIZE = 1024 * 1024


class AsyncReadable(Protocol):
    """Anything with an async read(size) method, e.g. FastAPI's UploadFile."""

    async def read(self, size: int = -1) -> Any: ...


async def store_upload(
    source: AsyncReadable,
    destination: str,
    role: AssetRole,
    original_extension: str,
    max_bytes: int,
    content_type: Optional[str] = None,
) -> UploadedAsset:
    """
    Copy an upload to destination in chunks.

    Args:
        source: Async readable upload stream
        destination: Path already registered with the job
        role: Video or logo
        original_extension: Extension of the client's file name
        max_bytes: Size limit for this role
        content_type: MIME type declared by the client, if any

    Returns:
        UploadedAsset describing the stored file

    Raises:
        FileTooLarge: The upload is larger than max_bytes (partial file is left
            for the job's cleanup)
    """
    os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
    loop = asyncio.get_event_loop()

    written = 0
    handle = await loop.run_in_executor(None, lambda: open(destination, "wb"))
    try:
        while True:
            chunk = await source.read(_CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                logger.info(f"Upload for {role.value} exceeded {max_bytes} bytes, aborting")
                raise FileTooLarge(role.value, max_bytes)
            await loop.run_in_executor(None, handle.write, chunk)
    finally:
        await loop.run_in_executor(None, handle.close)

    logger.debug(f"Stored {role.value} upload: {destination} ({written} bytes)")
    return UploadedAsset(
        path=destination,
        original_extension=original_extension,
        size_bytes=written,
        role=role,
        content_type=content_type,
    )
