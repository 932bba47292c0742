"""
Session Registry - tracks in-flight chunked uploads for this process.

Handles:
- Admission against the concurrent session ceiling (atomic with insertion)
- Session lookup and terminal cleanup (registry entry + scratch directory)
- Eviction of sessions abandoned by their client
"""

import asyncio
import logging
from typing import Dict, List, Optional

from app.core.exceptions import AdmissionRejected
from app.models.session import UploadSession
from app.uploads.scratch import ScratchStorage

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    In-memory registry of upload sessions.

    A single asyncio.Lock guards map mutation, so the ceiling check and the
    insert of a new session cannot interleave with another first chunk.
    """

    def __init__(self, scratch: ScratchStorage, max_sessions: int, retry_after: int):
        self.scratch = scratch
        self.max_sessions = max_sessions
        self.retry_after = retry_after
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = asyncio.Lock()

    async def open(
        self,
        upload_id: str,
        file_name: str,
        total_chunks: int,
        file_type: str,
        file_size: Optional[int] = None,
    ) -> UploadSession:
        """
        Return the session for upload_id, creating it on the first chunk.

        Raises:
            AdmissionRejected: If a new session would exceed the ceiling
            ChunkPersistError: If the session directory cannot be created
        """
        async with self._lock:
            session = self._sessions.get(upload_id)
            if session is not None:
                return session

            if len(self._sessions) >= self.max_sessions:
                logger.warning(
                    f"[SESSIONS] Rejecting {upload_id}: {len(self._sessions)}/{self.max_sessions} sessions open"
                )
                raise AdmissionRejected(self.max_sessions, self.retry_after)

            temp_dir = await self.scratch.create_session_dir(upload_id)
            session = UploadSession(
                upload_id=upload_id,
                file_name=file_name,
                total_chunks=total_chunks,
                file_type=file_type,
                temp_dir=temp_dir,
                file_size=file_size,
            )
            self._sessions[upload_id] = session
            logger.info(
                f"[SESSIONS] Opened {upload_id} for {file_name} "
                f"({total_chunks} chunks, {len(self._sessions)}/{self.max_sessions} open)"
            )
            return session

    def get(self, upload_id: str) -> Optional[UploadSession]:
        return self._sessions.get(upload_id)

    def count(self) -> int:
        return len(self._sessions)

    def open_ids(self) -> List[str]:
        return list(self._sessions.keys())

    async def close(self, session: UploadSession, reason: str) -> None:
        """
        Remove a session and its scratch directory.

        Idempotent: a session already closed is left alone. Cleanup failures
        are logged, never raised.
        """
        async with self._lock:
            if session.closed:
                return
            session.closed = True
            if self._sessions.get(session.upload_id) is session:
                del self._sessions[session.upload_id]

        await self._remove_scratch(session)
        logger.info(f"[SESSIONS] Closed {session.upload_id} (reason={reason})")

    async def expire_idle(self, max_age_seconds: float) -> List[str]:
        """
        Evict sessions idle for longer than max_age_seconds.

        Sessions whose lock is held are in the middle of a request and are
        skipped.

        Returns:
            Upload ids that were evicted
        """
        async with self._lock:
            expired = [
                session for session in self._sessions.values()
                if session.idle_seconds() > max_age_seconds and not session.lock.locked()
            ]
            for session in expired:
                session.closed = True
                del self._sessions[session.upload_id]

        for session in expired:
            await self._remove_scratch(session)
            logger.info(f"[SESSIONS] Expired idle session {session.upload_id} ({session.received_count}/{session.total_chunks} chunks)")

        return [session.upload_id for session in expired]

    async def close_all(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
        for session in sessions:
            await self.close(session, reason="shutdown")

    async def _remove_scratch(self, session: UploadSession) -> None:
        try:
            await self.scratch.remove_session_dir(session.upload_id)
        except OSError as e:
            logger.warning(f"[SESSIONS] Failed to remove scratch dir for {session.upload_id}: {e}")
