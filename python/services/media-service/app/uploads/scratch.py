"""
Scratch storage for chunk files and assembled uploads.

All blocking filesystem work runs in the default executor. Layout under the
root directory:

    upload_<uploadId>/chunk_<index>     one directory per session
    final_<uploadId>_<name>             assembled file, removed after publish
"""

import asyncio
import errno
import logging
import os
import shutil
from dataclasses import dataclass
from functools import partial
from typing import BinaryIO, List

from app.core.exceptions import ChunkPersistError
from app.s3.config import READ_CHUNK_SIZE
from app.utils.naming import sanitize_file_name

logger = logging.getLogger(__name__)

SESSION_DIR_PREFIX = "upload_"
ASSEMBLED_FILE_PREFIX = "final_"
ARTIFACT_PREFIXES = (SESSION_DIR_PREFIX, ASSEMBLED_FILE_PREFIX)


def persist_error_from_os_error(error: OSError) -> ChunkPersistError:
    """Translate an OSError into a ChunkPersistError category."""
    if error.errno == errno.ENOSPC:
        category = ChunkPersistError.DISK_SPACE
    elif error.errno == errno.ENOENT:
        category = ChunkPersistError.MISSING_TEMP_FILE
    else:
        category = ChunkPersistError.IO
    return ChunkPersistError(category, str(error))


@dataclass
class ScratchArtifact:
    """A top-level entry of the scratch area that the janitor may reclaim."""
    name: str
    path: str
    mtime: float
    is_dir: bool


class ScratchStorage:
    """Filesystem scratch area rooted at one directory."""

    def __init__(self, root: str):
        self.root = root

    async def _run(self, func, *args):
        return await asyncio.get_running_loop().run_in_executor(None, partial(func, *args))

    def session_dir(self, upload_id: str) -> str:
        return os.path.join(self.root, f"{SESSION_DIR_PREFIX}{upload_id}")

    def chunk_path(self, upload_id: str, index: int) -> str:
        return os.path.join(self.session_dir(upload_id), f"chunk_{index}")

    def assembled_path(self, upload_id: str, file_name: str) -> str:
        return os.path.join(self.root, f"{ASSEMBLED_FILE_PREFIX}{upload_id}_{sanitize_file_name(file_name)}")

    def ensure_root(self) -> None:
        os.makedirs(self.root, exist_ok=True)

    async def create_session_dir(self, upload_id: str) -> str:
        path = self.session_dir(upload_id)
        try:
            await self._run(partial(os.makedirs, path, exist_ok=True))
        except OSError as e:
            raise persist_error_from_os_error(e) from e
        return path

    def _write_chunk(self, upload_id: str, index: int, source: BinaryIO) -> int:
        path = self.chunk_path(upload_id, index)
        # Opening with "wb" truncates, so a re-sent index replaces the old bytes
        with open(path, "wb") as out:
            shutil.copyfileobj(source, out, READ_CHUNK_SIZE)
            return out.tell()

    async def write_chunk(self, upload_id: str, index: int, source: BinaryIO) -> int:
        """
        Stream one chunk into the session directory.

        Returns:
            Number of bytes written

        Raises:
            ChunkPersistError: disk full, directory vanished, or other I/O error
        """
        try:
            return await self._run(self._write_chunk, upload_id, index, source)
        except OSError as e:
            raise persist_error_from_os_error(e) from e

    async def remove_session_dir(self, upload_id: str) -> None:
        """Remove a session directory and everything in it. Missing is fine."""
        path = self.session_dir(upload_id)

        def _remove():
            try:
                shutil.rmtree(path)
            except FileNotFoundError:
                pass
        await self._run(_remove)

    async def remove_file(self, path: str) -> None:
        def _remove():
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
        await self._run(_remove)

    async def remove_artifact(self, artifact: ScratchArtifact) -> None:
        if artifact.is_dir:
            await self._run(shutil.rmtree, artifact.path)
        else:
            await self.remove_file(artifact.path)

    def _list_artifacts(self) -> List[ScratchArtifact]:
        artifacts = []
        try:
            entries = list(os.scandir(self.root))
        except FileNotFoundError:
            return artifacts
        for entry in entries:
            if not entry.name.startswith(ARTIFACT_PREFIXES):
                continue
            try:
                stat = entry.stat(follow_symlinks=False)
                artifacts.append(ScratchArtifact(
                    name=entry.name,
                    path=entry.path,
                    mtime=stat.st_mtime,
                    is_dir=entry.is_dir(follow_symlinks=False),
                ))
            except FileNotFoundError:
                # Removed by a finishing session between scandir and stat
                continue
        return artifacts

    async def list_artifacts(self) -> List[ScratchArtifact]:
        """Top-level upload artifacts currently in the scratch area."""
        return await self._run(self._list_artifacts)
