"""
Content-Type detection utilities.
Resolve MIME types from file extensions before trusting the client.
"""

import mimetypes
import os
from typing import Optional

from shared_schemas.media_service import MediaKind

FALLBACK_CONTENT_TYPE = "application/octet-stream"

# Known gallery formats. Mobile browsers report these inconsistently
# (Samsung sends video/3gp for mp4, iOS sends empty types), so the
# extension wins over whatever the client declared.
MEDIA_MIME_TYPES = {
    # Images
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",

    # Video
    ".mp4": "video/mp4",
    ".m4v": "video/mp4",
    ".mov": "video/quicktime",
    ".qt": "video/quicktime",
    ".3gp": "video/3gpp",
    ".webm": "video/webm",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
}


def file_extension(filename: str) -> str:
    """Lower-cased extension including the dot, or '' when there is none."""
    return os.path.splitext(filename)[1].lower()


def resolve_content_type(filename: str, provided_type: Optional[str] = None) -> str:
    """
    Resolve the Content-Type to store an object with.

    Priority: extension table > client-declared type > mimetypes guess >
    'application/octet-stream'.

    Args:
        filename: Original file name (e.g., "IMG_0042.MOV")
        provided_type: Content-Type declared by the client, untrusted

    Returns:
        MIME type string

    Examples:
        >>> resolve_content_type("IMG_0042.MOV", "video/3gp")
        'video/quicktime'

        >>> resolve_content_type("photo", "image/png")
        'image/png'

        >>> resolve_content_type("unknown.zzqx")
        'application/octet-stream'
    """
    mapped = MEDIA_MIME_TYPES.get(file_extension(filename))
    if mapped:
        return mapped

    if provided_type and provided_type != FALLBACK_CONTENT_TYPE:
        return provided_type

    guessed_type, _ = mimetypes.guess_type(filename)
    return guessed_type or provided_type or FALLBACK_CONTENT_TYPE


def media_kind_for(content_type: str) -> MediaKind:
    """Images go under photos/, everything else under videos/."""
    if content_type.startswith("image/"):
        return MediaKind.PHOTOS
    return MediaKind.VIDEOS
