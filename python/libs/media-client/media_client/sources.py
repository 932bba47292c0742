"""
Upload sources: a file name, size, declared type and a byte-range reader.
"""

import mimetypes
import os
from dataclasses import dataclass, field
from typing import Callable, Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class UploadSource:
    """One file to upload, from disk or memory."""

    name: str
    size: int
    content_type: str
    reader: Callable[[int, int], bytes] = field(repr=False)

    def read_range(self, start: int, end: int) -> bytes:
        """Bytes in [start, end)."""
        return self.reader(start, end)

    def read_all(self) -> bytes:
        return self.read_range(0, self.size)

    @classmethod
    def from_path(cls, path: str, content_type: Optional[str] = None) -> "UploadSource":
        def _read(start: int, end: int) -> bytes:
            with open(path, "rb") as f:
                f.seek(start)
                return f.read(end - start)

        name = os.path.basename(path)
        guessed, _ = mimetypes.guess_type(name)
        return cls(
            name=name,
            size=os.path.getsize(path),
            content_type=content_type or guessed or DEFAULT_CONTENT_TYPE,
            reader=_read,
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, content_type: Optional[str] = None) -> "UploadSource":
        guessed, _ = mimetypes.guess_type(name)
        return cls(
            name=name,
            size=len(data),
            content_type=content_type or guessed or DEFAULT_CONTENT_TYPE,
            reader=lambda start, end: data[start:end],
        )
