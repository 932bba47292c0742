"""
Object key and scratch file naming.

Keys look like ``<mediaKind>/<time>_[<session>_]<sanitizedName>``. The time
component is server time at publish and the session component always carries
a server-generated token, so two sessions never share a key, even when a
client reuses an upload id or guests upload files with the same name.
"""

import os
import re
import secrets
import string
import time
from typing import Optional

UPLOAD_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def is_valid_upload_id(upload_id: str) -> bool:
    """Upload ids name scratch directories, so only path-safe ids are accepted."""
    return bool(UPLOAD_ID_PATTERN.match(upload_id))


def sanitize_file_name(file_name: str) -> str:
    """Replace anything outside [A-Za-z0-9._-] with '_'."""
    base = os.path.basename(file_name.replace("\\", "/"))
    sanitized = _UNSAFE_CHARS.sub("_", base).lstrip(".")
    return sanitized or "file"


def random_token(length: int = 9) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def now_millis() -> str:
    return str(int(time.time() * 1000))


def upload_id_suffix(upload_id: str) -> str:
    """
    Random part of a client upload id (``upload_<ms>_<random>``), or the
    whole id when it does not follow that format.
    """
    parts = upload_id.split("_")
    if len(parts) >= 3 and parts[0] == "upload" and parts[1].isdigit():
        return "_".join(parts[2:])
    return upload_id


def session_key_component(upload_id: str) -> str:
    """
    Session component for a chunked upload key.

    The client id only makes keys readable; the appended server token is
    what keeps them unique when an id is reused.
    """
    return f"{upload_id_suffix(upload_id)}-{random_token()}"


def build_object_key(
    media_kind: str,
    file_name: str,
    time_component: Optional[str] = None,
    session_component: Optional[str] = None,
) -> str:
    """
    Build a collision-resistant object key.

    Args:
        media_kind: "photos" or "videos"
        file_name: Original client file name, untrusted
        time_component: Epoch milliseconds (defaults to now)
        session_component: Per-upload random component (omitted when None)

    Returns:
        Object key, e.g. "videos/1718000000123_k3j9x0a1b-4f8zq2m1c_first_dance.mp4"
    """
    time_component = time_component or now_millis()
    parts = [time_component]
    if session_component:
        parts.append(sanitize_file_name(session_component))
    parts.append(sanitize_file_name(file_name))
    return f"{media_kind}/{'_'.join(parts)}"


def build_thumbnail_key(file_name: str, time_component: str, session_component: str) -> str:
    stem = os.path.splitext(sanitize_file_name(file_name))[0] or "thumbnail"
    return f"thumbnails/{time_component}_{sanitize_file_name(session_component)}_{stem}.jpg"
