"""
Upload session data model for internal use.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Set


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UploadSession:
    """In-flight chunked upload, keyed by the client-generated upload id."""

    upload_id: str
    file_name: str
    total_chunks: int
    file_type: str
    temp_dir: str

    # Optional client-declared extras
    file_size: Optional[int] = None
    thumbnail_data: Optional[str] = None

    # Progress
    received_chunks: Set[int] = field(default_factory=set)

    # Timestamps
    created_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)

    # Set once the session reached success or error cleanup
    closed: bool = False

    # Serializes record-and-check-completion for this session
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def received_count(self) -> int:
        return len(self.received_chunks)

    @property
    def is_complete(self) -> bool:
        return self.received_count == self.total_chunks

    def record_chunk(self, index: int) -> None:
        """Record a stored chunk. Re-sent indices are counted once."""
        if not 0 <= index < self.total_chunks:
            raise ValueError(f"chunk index {index} outside 0..{self.total_chunks - 1}")
        self.received_chunks.add(index)
        self.mark_activity()

    def mark_activity(self) -> None:
        self.last_activity = _utcnow()

    def idle_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or _utcnow()) - self.last_activity).total_seconds()

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or _utcnow()) - self.created_at).total_seconds()
