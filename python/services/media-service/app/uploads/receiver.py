"""
Chunk Receiver - accepts one chunk per request.

Handles:
- Validation of chunk metadata (before any session mutation)
- Session admission through the registry
- Persisting the chunk and recording its index
- Assembly + publish when the last missing chunk arrives
- Session teardown on every terminal outcome
"""

import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional

from shared_schemas.media_service import COMPLETION_MESSAGE, ChunkUploadResponse, UploadMethod
from app.core.exceptions import (
    ChunkTooLargeError,
    MediaServiceError,
    SessionClosedError,
    UploadValidationError,
)
from app.models.session import UploadSession
from app.uploads.assembler import assemble_chunks
from app.uploads.janitor import TempJanitor
from app.uploads.publisher import MediaPublisher
from app.uploads.scratch import ScratchStorage
from app.uploads.session_registry import SessionRegistry
from app.utils.naming import is_valid_upload_id, session_key_component

logger = logging.getLogger(__name__)


@dataclass
class ChunkSubmission:
    """Metadata fields sent alongside one chunk."""
    upload_id: Optional[str]
    chunk_index: int
    total_chunks: int
    file_name: Optional[str]
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    thumbnail_data: Optional[str] = None


def validate_submission(submission: ChunkSubmission, has_payload: bool) -> None:
    """
    Reject malformed chunk requests.

    Raises:
        UploadValidationError: On the first problem found
    """
    if not submission.upload_id or not submission.file_name or not has_payload:
        raise UploadValidationError(
            "Missing parameters",
            "uploadId, fileName and chunk are required"
        )
    if not is_valid_upload_id(submission.upload_id):
        raise UploadValidationError("Invalid uploadId", "uploadId may only contain letters, digits, '_' and '-'")
    if submission.total_chunks < 1:
        raise UploadValidationError("Invalid totalChunks", f"totalChunks must be >= 1, got {submission.total_chunks}")
    if not 0 <= submission.chunk_index < submission.total_chunks:
        raise UploadValidationError(
            "Invalid chunkIndex",
            f"chunkIndex must be in 0..{submission.total_chunks - 1}, got {submission.chunk_index}"
        )
    if submission.file_size is not None and submission.file_size < 0:
        raise UploadValidationError("Invalid fileSize", "fileSize must be >= 0")


class ChunkReceiver:
    """Server side of the chunked upload protocol."""

    def __init__(
        self,
        registry: SessionRegistry,
        scratch: ScratchStorage,
        publisher: MediaPublisher,
        janitor: Optional[TempJanitor],
        max_chunk_bytes: int,
    ):
        self.registry = registry
        self.scratch = scratch
        self.publisher = publisher
        self.janitor = janitor
        self.max_chunk_bytes = max_chunk_bytes

    async def receive(
        self,
        submission: ChunkSubmission,
        chunk: Optional[BinaryIO],
        chunk_size: Optional[int] = None,
    ) -> ChunkUploadResponse:
        """
        Store one chunk and, if it completes its session, publish the file.

        Args:
            submission: Chunk metadata
            chunk: Readable chunk payload
            chunk_size: Payload size when the request layer knows it

        Returns:
            Partial acknowledgment, or the final response carrying ``file``

        Raises:
            MediaServiceError: Validation, admission, persistence, assembly
                or storage failure
        """
        if self.janitor is not None:
            await self.janitor.sweep_if_due()

        validate_submission(submission, chunk is not None)
        if chunk_size is not None and chunk_size > self.max_chunk_bytes:
            raise ChunkTooLargeError(
                "Chunk too large",
                f"chunk is {chunk_size} bytes, limit is {self.max_chunk_bytes} bytes"
            )

        session = await self.registry.open(
            submission.upload_id,
            submission.file_name,
            submission.total_chunks,
            submission.file_type or "",
            submission.file_size,
        )

        async with session.lock:
            if session.closed:
                raise SessionClosedError(
                    "Upload session already finished",
                    f"session {submission.upload_id} reached a terminal state while this chunk waited"
                )
            if submission.total_chunks != session.total_chunks:
                raise UploadValidationError(
                    "totalChunks mismatch",
                    f"session expects {session.total_chunks} chunks, request declared {submission.total_chunks}"
                )

            try:
                await self.scratch.write_chunk(session.upload_id, submission.chunk_index, chunk)
            except Exception:
                await self.registry.close(session, reason="persist_error")
                raise

            session.record_chunk(submission.chunk_index)
            if submission.thumbnail_data and not session.thumbnail_data:
                session.thumbnail_data = submission.thumbnail_data

            logger.info(
                f"[CHUNK UPLOAD] {session.upload_id}: chunk {submission.chunk_index + 1}/{session.total_chunks} "
                f"stored ({session.received_count} received)"
            )

            if not session.is_complete:
                return ChunkUploadResponse(
                    success=True,
                    message=f"{submission.chunk_index + 1}/{session.total_chunks} received",
                    received_chunks=session.received_count,
                    total_chunks=session.total_chunks,
                )

            return await self._finalize(session)

    async def _finalize(self, session: UploadSession) -> ChunkUploadResponse:
        """Assemble, publish, and always tear the session down."""
        logger.info(f"[CHUNK UPLOAD] All chunks received for {session.upload_id}, assembling...")
        reason = "error"
        try:
            assembled = await assemble_chunks(self.scratch, session)

            target = self.publisher.plan(
                session.file_name,
                session.file_type,
                session_component=session_key_component(session.upload_id),
            )
            media = await self.publisher.publish_path(
                target,
                assembled.path,
                assembled.size_bytes,
                session.file_name,
                method=UploadMethod.CHUNKS,
                extra_metadata={"total-chunks": str(session.total_chunks)},
                thumbnail_data=session.thumbnail_data,
            )
            reason = "completed"
        except MediaServiceError as e:
            logger.error(f"[CHUNK UPLOAD] Finalizing {session.upload_id} failed: {e.message} ({e.details})")
            raise
        finally:
            try:
                await self.scratch.remove_file(self.scratch.assembled_path(session.upload_id, session.file_name))
            except OSError as e:
                logger.warning(f"[CHUNK UPLOAD] Failed to remove assembled file for {session.upload_id}: {e}")
            await self.registry.close(session, reason=reason)

        logger.info(
            f"[CHUNK UPLOAD] Completed {session.upload_id} -> {media.id} "
            f"in {session.age_seconds():.1f}s"
        )
        return ChunkUploadResponse(success=True, message=COMPLETION_MESSAGE, file=media)
