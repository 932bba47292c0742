"""
Media Service API schemas.
Type-safe contracts for the upload, listing and presigned URL endpoints.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from shared_schemas.common import CamelModel


class MediaKind(str, Enum):
    """Top-level prefix a media object is stored under."""
    PHOTOS = "photos"
    VIDEOS = "videos"


class UploadMethod(str, Enum):
    """How a file reached the service."""
    SIMPLE = "simple"
    CHUNKS = "chunks"


# ============================================================================
# Common Models
# ============================================================================

class UploadedMedia(CamelModel):
    """A media object stored in the bucket, as returned after an upload."""
    id: str  # Storage key
    name: str
    url: str
    thumbnail_url: str
    web_view_link: str
    size: Optional[int] = None
    type: Optional[str] = None


# ============================================================================
# Upload Endpoints
# ============================================================================

# Message of the response that carries the stored file
COMPLETION_MESSAGE = "Upload complete"


class ChunkUploadResponse(CamelModel):
    """
    Response from the chunk endpoint.

    Partial acknowledgments carry received_chunks/total_chunks; the response
    to the chunk that completes the session carries ``file`` instead.
    """
    success: bool
    message: str
    received_chunks: Optional[int] = None
    total_chunks: Optional[int] = None
    file: Optional[UploadedMedia] = None

    @property
    def is_complete(self) -> bool:
        return self.file is not None


class SimpleUploadResponse(CamelModel):
    """Response from the single-shot upload endpoint."""
    success: bool
    file: UploadedMedia
    message: Optional[str] = None


# ============================================================================
# Listing Endpoints
# ============================================================================

class MediaListItem(CamelModel):
    """One gallery entry."""
    id: str
    name: str
    url: str
    thumbnail_link: str
    web_view_link: str
    size: Optional[int] = None
    created_time: str


class PaginationInfo(CamelModel):
    """Cursor pagination metadata."""
    has_more: bool
    next_cursor: Optional[str] = None
    limit: int
    count: int


class MediaListResponse(CamelModel):
    """One page of gallery entries."""
    data: list[MediaListItem]
    pagination: PaginationInfo


# ============================================================================
# Presigned URL Endpoints
# ============================================================================

class PresignedMediaType(str, Enum):
    """Media type accepted by the presigned URL endpoint."""
    PHOTO = "photo"
    VIDEO = "video"


class PresignedUrlRequest(CamelModel):
    """Request for a direct-to-bucket upload URL."""
    file_name: str = Field(min_length=1)
    file_type: str = Field(min_length=1)
    media_type: PresignedMediaType


class PresignedUrlResponse(CamelModel):
    """Presigned PUT URL plus the public URL the object will have."""
    success: bool
    presigned_url: str
    file_name: str  # Storage key
    public_url: str
    content_type: str
    expires_in: int


# ============================================================================
# Health Check
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str
    s3_connection: str
    open_sessions: Optional[int] = None
