"""
Upload Router - picks the single-shot or chunked path for each file.
"""

import logging
import math
from enum import Enum
from typing import Optional

import httpx

from shared_schemas.media_service import SimpleUploadResponse, UploadedMedia
from media_client.chunked import ProgressCallback, upload_in_chunks
from media_client.config import (
    CHUNK_SIZE,
    CHUNK_UPLOAD_ENDPOINT,
    REQUEST_TIMEOUT_SECONDS,
    SIMPLE_UPLOAD_ENDPOINT,
    SIMPLE_UPLOAD_THRESHOLD,
)
from media_client.errors import UploadFailedError
from media_client.sources import UploadSource

logger = logging.getLogger(__name__)


class UploadStrategy(str, Enum):
    """Upload path for a file."""
    SIMPLE = "simple"
    CHUNKED = "chunked"


def choose_strategy(size: int, threshold: int = SIMPLE_UPLOAD_THRESHOLD) -> UploadStrategy:
    """A file of exactly ``threshold`` bytes still goes in one request."""
    if size <= threshold:
        return UploadStrategy.SIMPLE
    return UploadStrategy.CHUNKED


async def upload_simple(
    client: httpx.AsyncClient,
    source: UploadSource,
    endpoint: str = SIMPLE_UPLOAD_ENDPOINT,
    thumbnail_data: Optional[str] = None,
) -> UploadedMedia:
    """
    Upload a whole file in one request.

    Raises:
        UploadFailedError: If the request fails
    """
    data = {"thumbnailData": thumbnail_data} if thumbnail_data else None
    files = {"file": (source.name, source.read_all(), source.content_type)}

    try:
        response = await client.post(endpoint, data=data, files=files)
    except httpx.HTTPError as e:
        raise UploadFailedError(source.name, f"simple upload failed: {e}") from e

    if response.is_error:
        raise UploadFailedError.from_response(source.name, response, "simple upload")

    return SimpleUploadResponse.model_validate(response.json()).file


class MediaUploadClient:
    """
    Uploads files to the media service, routing on size.

    Example:
        async with httpx.AsyncClient(base_url="https://gallery.example") as http:
            uploader = MediaUploadClient(http)
            media = await uploader.upload(UploadSource.from_path("first_dance.mp4"))
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        threshold: int = SIMPLE_UPLOAD_THRESHOLD,
        chunk_size: int = CHUNK_SIZE,
        simple_endpoint: str = SIMPLE_UPLOAD_ENDPOINT,
        chunk_endpoint: str = CHUNK_UPLOAD_ENDPOINT,
    ):
        self.client = client
        self.threshold = threshold
        self.chunk_size = chunk_size
        self.simple_endpoint = simple_endpoint
        self.chunk_endpoint = chunk_endpoint

    @classmethod
    def for_base_url(cls, base_url: str, **kwargs) -> "MediaUploadClient":
        """Build with a dedicated httpx client; close it with ``aclose()``."""
        client = httpx.AsyncClient(base_url=base_url, timeout=REQUEST_TIMEOUT_SECONDS, follow_redirects=True)
        return cls(client, **kwargs)

    async def aclose(self) -> None:
        await self.client.aclose()

    def strategy_for(self, source: UploadSource) -> UploadStrategy:
        return choose_strategy(source.size, self.threshold)

    def planned_requests(self, source: UploadSource) -> int:
        """Requests this file will take: 1 for simple uploads, the chunk count otherwise."""
        if self.strategy_for(source) == UploadStrategy.SIMPLE:
            return 1
        return math.ceil(source.size / self.chunk_size)

    async def upload(
        self,
        source: UploadSource,
        progress: Optional[ProgressCallback] = None,
        thumbnail_data: Optional[str] = None,
    ) -> UploadedMedia:
        """
        Upload one file.

        Args:
            source: File to upload
            progress: Called with (requests done, requests total) for this file
            thumbnail_data: Optional base64 data URL thumbnail

        Raises:
            UploadFailedError, IncompleteUploadError
        """
        strategy = self.strategy_for(source)
        logger.info(f"Uploading {source.name} ({source.size} bytes) via {strategy.value} path")

        if strategy == UploadStrategy.SIMPLE:
            media = await upload_simple(self.client, source, self.simple_endpoint, thumbnail_data)
            if progress:
                progress(1, 1)
            return media

        return await upload_in_chunks(
            self.client,
            source,
            chunk_size=self.chunk_size,
            endpoint=self.chunk_endpoint,
            progress=progress,
            thumbnail_data=thumbnail_data,
        )
