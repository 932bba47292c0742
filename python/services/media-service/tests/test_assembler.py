"""
Tests for chunk assembly and scratch storage.
"""

import errno
import io
import os

import pytest

from app.core.exceptions import AssemblyError, ChunkPersistError
from app.models.session import UploadSession
from app.uploads.assembler import assemble_chunks
from app.uploads.scratch import ScratchStorage, persist_error_from_os_error


@pytest.fixture
def scratch(scratch_root):
    storage = ScratchStorage(scratch_root)
    storage.ensure_root()
    return storage


async def _session_with_chunks(scratch, parts, order, file_size=None, upload_id="upload_1718000000000_abc"):
    await scratch.create_session_dir(upload_id)
    session = UploadSession(
        upload_id=upload_id,
        file_name="first dance.mp4",
        total_chunks=len(parts),
        file_type="video/mp4",
        temp_dir=scratch.session_dir(upload_id),
        file_size=file_size,
    )
    for index in order:
        await scratch.write_chunk(upload_id, index, io.BytesIO(parts[index]))
        session.record_chunk(index)
    return session


@pytest.mark.asyncio
@pytest.mark.parametrize("order", [[0, 1, 2, 3], [3, 2, 1, 0], [2, 0, 3, 1]])
async def test_assembly_follows_index_order_not_arrival_order(scratch, order):
    parts = [b"AAAA", b"BBBB", b"CCCC", b"DD"]
    session = await _session_with_chunks(scratch, parts, order, file_size=14)

    assembled = await assemble_chunks(scratch, session)

    with open(assembled.path, "rb") as f:
        assert f.read() == b"AAAABBBBCCCCDD"
    assert assembled.size_bytes == 14
    assert assembled.path == scratch.assembled_path(session.upload_id, session.file_name)


@pytest.mark.asyncio
async def test_resent_chunk_replaces_previous_bytes(scratch):
    session = await _session_with_chunks(scratch, [b"old!", b"tail"], [0, 1])
    await scratch.write_chunk(session.upload_id, 0, io.BytesIO(b"new!"))

    assembled = await assemble_chunks(scratch, session)

    with open(assembled.path, "rb") as f:
        assert f.read() == b"new!tail"


@pytest.mark.asyncio
async def test_missing_chunk_fails_and_leaves_no_output(scratch):
    session = await _session_with_chunks(scratch, [b"AAAA", b"BBBB", b"CC"], [0, 2])

    with pytest.raises(AssemblyError) as exc_info:
        await assemble_chunks(scratch, session)

    assert "chunk 1" in exc_info.value.details
    assert not os.path.exists(scratch.assembled_path(session.upload_id, session.file_name))


@pytest.mark.asyncio
async def test_declared_size_mismatch_fails(scratch):
    session = await _session_with_chunks(scratch, [b"AAAA", b"BB"], [0, 1], file_size=100)

    with pytest.raises(AssemblyError) as exc_info:
        await assemble_chunks(scratch, session)

    assert exc_info.value.status_code == 500
    assert "100" in exc_info.value.details
    assert not os.path.exists(scratch.assembled_path(session.upload_id, session.file_name))


@pytest.mark.asyncio
async def test_write_chunk_returns_bytes_written(scratch):
    await scratch.create_session_dir("upload_1_a")

    written = await scratch.write_chunk("upload_1_a", 0, io.BytesIO(b"x" * 1234))

    assert written == 1234
    assert os.path.getsize(scratch.chunk_path("upload_1_a", 0)) == 1234


@pytest.mark.asyncio
async def test_write_chunk_without_session_dir_is_missing_temp_file(scratch):
    with pytest.raises(ChunkPersistError) as exc_info:
        await scratch.write_chunk("upload_1_gone", 0, io.BytesIO(b"data"))

    assert exc_info.value.category == ChunkPersistError.MISSING_TEMP_FILE
    assert exc_info.value.to_response().category == "missing_temp_file"


def test_persist_error_categories():
    assert persist_error_from_os_error(OSError(errno.ENOSPC, "No space left")).category == ChunkPersistError.DISK_SPACE
    assert persist_error_from_os_error(OSError(errno.ENOENT, "Not found")).category == ChunkPersistError.MISSING_TEMP_FILE
    assert persist_error_from_os_error(OSError(errno.EACCES, "Denied")).category == ChunkPersistError.IO


def test_assembled_path_is_sanitized(scratch):
    path = scratch.assembled_path("upload_1_a", "../../etc/passwd")

    assert os.path.dirname(path) == scratch.root
    assert os.path.basename(path) == "final_upload_1_a_passwd"
