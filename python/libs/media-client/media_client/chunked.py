"""
Chunk Splitter - uploads one large file as a sequence of chunks.

Chunks go out strictly one at a time, in index order, each waiting for the
service's acknowledgment. Any failed chunk fails the whole file; there is no
retry and no resume.
"""

import logging
import math
import secrets
import string
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx

from shared_schemas.media_service import ChunkUploadResponse, UploadedMedia
from media_client.config import CHUNK_SIZE, CHUNK_UPLOAD_ENDPOINT
from media_client.errors import IncompleteUploadError, UploadFailedError
from media_client.sources import UploadSource

logger = logging.getLogger(__name__)

# Called with (chunks acknowledged so far, total chunks)
ProgressCallback = Callable[[int, int], None]

_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class ChunkRange:
    """Byte range [start, end) of chunk ``index``."""
    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


def plan_chunks(size: int, chunk_size: int = CHUNK_SIZE) -> List[ChunkRange]:
    """
    Split ``size`` bytes into ceil(size / chunk_size) consecutive ranges.

    Examples:
        >>> [c.size for c in plan_chunks(10, 3)]
        [3, 3, 3, 1]
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    total = math.ceil(size / chunk_size)
    return [
        ChunkRange(index=i, start=i * chunk_size, end=min((i + 1) * chunk_size, size))
        for i in range(total)
    ]


def generate_upload_id() -> str:
    """``upload_<epoch-ms>_<9 random base36 chars>``, one per file."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"upload_{int(time.time() * 1000)}_{suffix}"


async def upload_in_chunks(
    client: httpx.AsyncClient,
    source: UploadSource,
    chunk_size: int = CHUNK_SIZE,
    endpoint: str = CHUNK_UPLOAD_ENDPOINT,
    progress: Optional[ProgressCallback] = None,
    thumbnail_data: Optional[str] = None,
    upload_id: Optional[str] = None,
) -> UploadedMedia:
    """
    Upload a file through the chunk endpoint.

    Args:
        client: HTTP client pointed at the media service
        source: File to upload
        chunk_size: Bytes per chunk
        endpoint: Chunk endpoint path
        progress: Called after every acknowledged chunk
        thumbnail_data: Optional base64 data URL sent with the first chunk
        upload_id: Reuse a specific id (generated when omitted)

    Returns:
        The stored file record from the final response

    Raises:
        UploadFailedError: On the first failed chunk request
        IncompleteUploadError: If no response carried the stored file
    """
    chunks = plan_chunks(source.size, chunk_size)
    total = len(chunks)
    upload_id = upload_id or generate_upload_id()

    logger.info(f"[CHUNKED] {source.name}: {source.size} bytes in {total} chunks of {chunk_size} bytes ({upload_id})")

    for chunk in chunks:
        data = {
            "uploadId": upload_id,
            "chunkIndex": str(chunk.index),
            "totalChunks": str(total),
            "fileName": source.name,
            "fileType": source.content_type,
            "fileSize": str(source.size),
        }
        if thumbnail_data and chunk.index == 0:
            data["thumbnailData"] = thumbnail_data

        files = {"chunk": (source.name, source.read_range(chunk.start, chunk.end), "application/octet-stream")}

        try:
            response = await client.post(endpoint, data=data, files=files)
        except httpx.HTTPError as e:
            raise UploadFailedError(source.name, f"chunk {chunk.index + 1}/{total} failed: {e}") from e

        if response.is_error:
            raise UploadFailedError.from_response(source.name, response, f"chunk {chunk.index + 1}/{total}")

        result = ChunkUploadResponse.model_validate(response.json())
        if progress:
            progress(chunk.index + 1, total)

        if result.is_complete:
            logger.info(f"[CHUNKED] {source.name} stored as {result.file.id}")
            return result.file

        logger.debug(f"[CHUNKED] {source.name}: {result.message}")

    raise IncompleteUploadError(source.name, total)
