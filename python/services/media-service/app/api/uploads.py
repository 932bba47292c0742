"""
Upload API endpoints.
Chunked uploads for large files and single-shot uploads for small ones.
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, File, Form, UploadFile

from shared_schemas.media_service import ChunkUploadResponse, SimpleUploadResponse
from app.core.dependencies import Services
from app.core.exceptions import UploadValidationError
from app.uploads.receiver import ChunkSubmission

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["uploads"]
)


@router.post("/upload-chunk", response_model=ChunkUploadResponse, response_model_exclude_none=True)
async def upload_chunk(
    services: Services,
    chunk: Optional[UploadFile] = File(None),
    upload_id: Optional[str] = Form(None, alias="uploadId"),
    chunk_index: int = Form(0, alias="chunkIndex"),
    total_chunks: int = Form(1, alias="totalChunks"),
    file_name: Optional[str] = Form(None, alias="fileName"),
    file_type: Optional[str] = Form(None, alias="fileType"),
    file_size: Optional[int] = Form(None, alias="fileSize"),
    thumbnail_data: Optional[str] = Form(None, alias="thumbnailData"),
):
    """
    Receive one chunk of a large file.

    Chunks of a file must be sent one at a time, in index order, each after
    the previous one was acknowledged. The response to the last chunk
    carries the stored ``file``; earlier responses report progress.

    Example:
        curl -X POST "http://server/api/upload-chunk" \\
          -F "chunk=@part0" -F "uploadId=upload_1718000000000_k3j9x0a1b" \\
          -F "chunkIndex=0" -F "totalChunks=4" \\
          -F "fileName=first_dance.mp4" -F "fileType=video/mp4"

    Returns:
        Partial acknowledgment or final file record
    """
    start_time = time.time()
    submission = ChunkSubmission(
        upload_id=upload_id,
        chunk_index=chunk_index,
        total_chunks=total_chunks,
        file_name=file_name,
        file_type=file_type,
        file_size=file_size,
        thumbnail_data=thumbnail_data,
    )

    try:
        result = await services.receiver.receive(
            submission,
            chunk.file if chunk is not None else None,
            chunk.size if chunk is not None else None,
        )
    finally:
        # Release the request-scoped spool file right away
        if chunk is not None:
            await chunk.close()

    if result.is_complete:
        duration = time.time() - start_time
        logger.info(f"[CHUNK UPLOAD] Final chunk of {upload_id} handled in {duration:.2f}s")
    return result


@router.post("/upload", response_model=SimpleUploadResponse, response_model_exclude_none=True)
async def upload_file(
    services: Services,
    file: Optional[UploadFile] = File(None),
    thumbnail_data: Optional[str] = Form(None, alias="thumbnailData"),
):
    """
    Upload a small photo or video in a single request.

    Files above MAX_SIMPLE_UPLOAD_BYTES are rejected with 413; clients send
    those through /api/upload-chunk instead.

    Returns:
        Stored file record with its public URL
    """
    if file is None:
        raise UploadValidationError("No file received", "multipart field 'file' is required")

    try:
        services.simple.check_size(file.size)
        data = await file.read()
    finally:
        await file.close()

    logger.info(f"[SIMPLE UPLOAD] Received {file.filename} ({len(data)} bytes, {file.content_type})")
    return await services.simple.upload(file.filename, file.content_type, data, thumbnail_data)
