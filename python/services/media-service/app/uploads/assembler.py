"""
Chunk assembly.
Concatenates a completed session's chunk files, in index order, into one file.
"""

import asyncio
import logging
import os
from dataclasses import dataclass

from app.core.exceptions import AssemblyError
from app.models.session import UploadSession
from app.s3.config import READ_CHUNK_SIZE
from app.uploads.scratch import ScratchStorage

logger = logging.getLogger(__name__)


@dataclass
class AssembledFile:
    """Output of a successful assembly."""
    path: str
    size_bytes: int


def _concatenate(scratch: ScratchStorage, session: UploadSession, output_path: str) -> int:
    expected = 0
    with open(output_path, "wb") as out:
        # Arrival order is irrelevant; bytes are laid out by ascending index
        for index in range(session.total_chunks):
            chunk_path = scratch.chunk_path(session.upload_id, index)
            if not os.path.exists(chunk_path):
                raise AssemblyError("Missing chunk during assembly", f"chunk {index} of {session.upload_id} not found")
            expected += os.path.getsize(chunk_path)
            with open(chunk_path, "rb") as chunk:
                while True:
                    data = chunk.read(READ_CHUNK_SIZE)
                    if not data:
                        break
                    out.write(data)
        written = out.tell()

    if written != expected:
        raise AssemblyError(
            "Assembled file is incomplete",
            f"wrote {written} bytes, chunks hold {expected} bytes"
        )
    if session.file_size is not None and written != session.file_size:
        raise AssemblyError(
            "Assembled file size does not match the declared size",
            f"assembled {written} bytes, client declared {session.file_size} bytes"
        )
    return written


async def assemble_chunks(scratch: ScratchStorage, session: UploadSession) -> AssembledFile:
    """
    Build the final file for a session whose chunks have all arrived.

    Args:
        scratch: Scratch storage holding the chunk files
        session: Completed session

    Returns:
        AssembledFile pointing at the output in the scratch area

    Raises:
        AssemblyError: On a missing chunk, short write or size mismatch.
            The partial output file is removed before raising.
    """
    output_path = scratch.assembled_path(session.upload_id, session.file_name)
    logger.info(f"[ASSEMBLY] Assembling {session.total_chunks} chunks for {session.upload_id}")

    try:
        size_bytes = await asyncio.get_running_loop().run_in_executor(
            None, _concatenate, scratch, session, output_path
        )
    except AssemblyError:
        await scratch.remove_file(output_path)
        raise
    except OSError as e:
        await scratch.remove_file(output_path)
        raise AssemblyError("Failed to assemble chunks", str(e)) from e

    logger.info(f"[ASSEMBLY] Assembled {session.upload_id}: {size_bytes} bytes")
    return AssembledFile(path=output_path, size_bytes=size_bytes)
