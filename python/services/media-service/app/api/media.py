"""
Gallery API endpoints.
Paginated listings of stored photos and videos, and presigned upload URLs.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Query

from shared_schemas.media_service import (
    MediaKind,
    MediaListItem,
    MediaListResponse,
    PaginationInfo,
    PresignedMediaType,
    PresignedUrlRequest,
    PresignedUrlResponse,
)
from app.core.config import settings
from app.core.dependencies import MediaServices, Services
from app.utils.content_type import resolve_content_type
from app.utils.naming import build_object_key, random_token

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["media"]
)


async def list_media(services: MediaServices, kind: MediaKind, limit: int, cursor: Optional[str]) -> MediaListResponse:
    """List one page of a media prefix, newest first within the page."""
    prefix = f"{kind.value}/"
    objects, next_cursor = await asyncio.get_running_loop().run_in_executor(
        None, services.s3.list_page, prefix, limit, cursor
    )

    items = []
    for obj in objects:
        key = obj["Key"]
        url = services.s3.get_public_url(key)
        last_modified = obj.get("LastModified")
        items.append(MediaListItem(
            id=key,
            name=key.split("/")[-1] or key,
            url=url,
            thumbnail_link=url,
            web_view_link=url,
            size=obj.get("Size"),
            created_time=last_modified.isoformat() if last_modified else "",
        ))
    items.sort(key=lambda item: item.created_time, reverse=True)

    logger.info(f"Listed {len(items)} {kind.value} (has_more={next_cursor is not None})")
    return MediaListResponse(
        data=items,
        pagination=PaginationInfo(
            has_more=next_cursor is not None,
            next_cursor=next_cursor,
            limit=limit,
            count=len(items),
        )
    )


@router.get("/photos", response_model=MediaListResponse)
async def list_photos(
    services: Services,
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor: Optional[str] = None,
):
    """List gallery photos. Pass ``nextCursor`` back as ``cursor`` for the next page."""
    return await list_media(services, MediaKind.PHOTOS, limit, cursor)


@router.get("/videos", response_model=MediaListResponse)
async def list_videos(
    services: Services,
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    cursor: Optional[str] = None,
):
    """List gallery videos. Pass ``nextCursor`` back as ``cursor`` for the next page."""
    return await list_media(services, MediaKind.VIDEOS, limit, cursor)


@router.post("/presigned-url", response_model=PresignedUrlResponse)
async def create_presigned_url(request: PresignedUrlRequest, services: Services):
    """
    Generate a presigned PUT URL for a direct browser-to-bucket upload.

    Video content types go through the extension table, since phones
    report them inconsistently; photos keep the declared type.
    """
    if request.media_type == PresignedMediaType.VIDEO:
        content_type = resolve_content_type(request.file_name, request.file_type)
    else:
        content_type = request.file_type

    key = build_object_key(f"{request.media_type.value}s", request.file_name, session_component=random_token())
    expiration = settings.PRESIGNED_URL_EXPIRATION
    url = services.s3.generate_presigned_upload_url(key, content_type, expiration)

    return PresignedUrlResponse(
        success=True,
        presigned_url=url,
        file_name=key,
        public_url=services.s3.get_public_url(key),
        content_type=content_type,
        expires_in=expiration,
    )
