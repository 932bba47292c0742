"""
Object store publishing.
Pushes finished uploads to the bucket under a generated key and builds the
UploadedMedia record returned to the client.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from shared_schemas.media_service import MediaKind, UploadedMedia, UploadMethod
from app.core.exceptions import StorageUploadError
from app.s3.client import S3Client
from app.utils.content_type import media_kind_for, resolve_content_type
from app.utils.naming import build_object_key, build_thumbnail_key, now_millis, random_token

logger = logging.getLogger(__name__)

THUMBNAIL_CONTENT_TYPE = "image/jpeg"


@dataclass
class PublishTarget:
    """Where and how an upload will be stored."""
    key: str
    content_type: str
    media_kind: MediaKind
    time_component: str
    session_component: str


def metadata_value(value: str) -> str:
    """S3 user metadata must be printable ASCII; control characters are dropped."""
    ascii_value = value.encode("ascii", "replace").decode("ascii")
    return "".join(ch for ch in ascii_value if ch.isprintable())


def decode_data_url(data_url: str) -> bytes:
    """
    Decode a base64 data URL (``data:image/jpeg;base64,...``).

    Raises:
        ValueError: If the payload is not valid base64
    """
    payload = data_url.split(",", 1)[1] if "," in data_url else data_url
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid thumbnail data: {e}") from e


class MediaPublisher:
    """Stores media objects and reports their public URLs."""

    def __init__(self, s3: S3Client):
        self.s3 = s3

    def plan(
        self,
        file_name: str,
        declared_type: Optional[str],
        time_component: Optional[str] = None,
        session_component: Optional[str] = None,
    ) -> PublishTarget:
        """
        Resolve content type, media kind and object key for an upload.

        The time component defaults to now and the session component to a
        fresh random token; chunked uploads pass one derived from their
        upload id.
        """
        content_type = resolve_content_type(file_name, declared_type)
        media_kind = media_kind_for(content_type)
        time_component = time_component or now_millis()
        session_component = session_component or random_token()
        key = build_object_key(media_kind.value, file_name, time_component, session_component)
        return PublishTarget(
            key=key,
            content_type=content_type,
            media_kind=media_kind,
            time_component=time_component,
            session_component=session_component,
        )

    def _metadata(self, file_name: str, method: UploadMethod, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        metadata = {
            "original-name": metadata_value(file_name),
            "upload-date": datetime.now(timezone.utc).isoformat(),
            "upload-method": method.value,
        }
        metadata.update(extra or {})
        return metadata

    async def publish_path(
        self,
        target: PublishTarget,
        path: str,
        size_bytes: int,
        file_name: str,
        method: UploadMethod = UploadMethod.CHUNKS,
        extra_metadata: Optional[Dict[str, str]] = None,
        thumbnail_data: Optional[str] = None,
    ) -> UploadedMedia:
        """
        Upload a local file (assembled chunks) to the bucket.

        Raises:
            StorageUploadError: If the push fails
        """
        logger.info(f"[PUBLISH] Uploading {target.key} ({size_bytes} bytes, {target.content_type})")
        await self.s3.upload_path(
            target.key,
            path,
            target.content_type,
            self._metadata(file_name, method, extra_metadata),
        )
        return await self._build_record(target, file_name, size_bytes, thumbnail_data)

    async def publish_bytes(
        self,
        target: PublishTarget,
        data: bytes,
        file_name: str,
        method: UploadMethod = UploadMethod.SIMPLE,
        extra_metadata: Optional[Dict[str, str]] = None,
        thumbnail_data: Optional[str] = None,
    ) -> UploadedMedia:
        """
        Upload an in-memory payload (simple upload path) to the bucket.

        Raises:
            StorageUploadError: If the push fails
        """
        logger.info(f"[PUBLISH] Uploading {target.key} ({len(data)} bytes, {target.content_type})")
        await self.s3.upload_bytes(
            target.key,
            data,
            target.content_type,
            self._metadata(file_name, method, extra_metadata),
        )
        return await self._build_record(target, file_name, len(data), thumbnail_data)

    async def _build_record(
        self,
        target: PublishTarget,
        file_name: str,
        size_bytes: int,
        thumbnail_data: Optional[str],
    ) -> UploadedMedia:
        url = self.s3.get_public_url(target.key)
        thumbnail_url = url
        if thumbnail_data:
            thumbnail_url = await self._publish_thumbnail(target, file_name, thumbnail_data) or url

        return UploadedMedia(
            id=target.key,
            name=file_name,
            url=url,
            thumbnail_url=thumbnail_url,
            web_view_link=url,
            size=size_bytes,
            type=target.content_type,
        )

    async def _publish_thumbnail(self, target: PublishTarget, file_name: str, thumbnail_data: str) -> Optional[str]:
        """Upload a client-generated thumbnail. Failures only cost the thumbnail."""
        key = build_thumbnail_key(file_name, target.time_component, target.session_component)
        try:
            data = decode_data_url(thumbnail_data)
            await self.s3.upload_bytes(key, data, THUMBNAIL_CONTENT_TYPE)
        except (ValueError, StorageUploadError) as e:
            logger.warning(f"[PUBLISH] Thumbnail upload failed for {target.key}, using media URL: {e}")
            return None

        logger.info(f"[PUBLISH] Thumbnail uploaded: {key}")
        return self.s3.get_public_url(key)
