"""
Single-shot upload path for files at or below the simple upload threshold.
No session is created; the request-scoped temp file is read into memory and
pushed directly.
"""

import logging
from typing import Optional

from shared_schemas.media_service import COMPLETION_MESSAGE, SimpleUploadResponse, UploadMethod
from app.core.exceptions import ChunkTooLargeError, UploadValidationError
from app.uploads.publisher import MediaPublisher

logger = logging.getLogger(__name__)


class SimpleUploader:
    """Uploads a whole file received in one request."""

    def __init__(self, publisher: MediaPublisher, max_bytes: int):
        self.publisher = publisher
        self.max_bytes = max_bytes

    def check_size(self, size: Optional[int]) -> None:
        if size is not None and size > self.max_bytes:
            raise ChunkTooLargeError(
                "File too large for simple upload",
                f"{size} bytes exceeds {self.max_bytes} bytes; files above this size must be sent in chunks"
            )

    async def upload(
        self,
        file_name: Optional[str],
        declared_type: Optional[str],
        data: bytes,
        thumbnail_data: Optional[str] = None,
    ) -> SimpleUploadResponse:
        """
        Push an in-memory file to the bucket.

        Raises:
            UploadValidationError: If no file was received
            ChunkTooLargeError: If the payload exceeds the simple upload limit
            StorageUploadError: If the push fails
        """
        if not file_name:
            raise UploadValidationError("No file received", "multipart field 'file' is required")
        self.check_size(len(data))

        target = self.publisher.plan(file_name, declared_type)
        media = await self.publisher.publish_bytes(
            target,
            data,
            file_name,
            method=UploadMethod.SIMPLE,
            extra_metadata={"file-size": str(len(data))},
            thumbnail_data=thumbnail_data,
        )
        logger.info(f"[SIMPLE UPLOAD] Completed {file_name} -> {media.id}")
        return SimpleUploadResponse(success=True, file=media, message=COMPLETION_MESSAGE)
