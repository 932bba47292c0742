"""
Tests for the chunk receiver: the full session lifecycle against the in-memory
bucket and a real scratch directory.
"""

import asyncio
import base64
import io
import os
import re
from datetime import timedelta

import pytest

from shared_schemas.media_service import COMPLETION_MESSAGE
from app.core.exceptions import (
    AdmissionRejected,
    AssemblyError,
    ChunkPersistError,
    ChunkTooLargeError,
    SessionClosedError,
    StorageUploadError,
    UploadValidationError,
)
from app.uploads.publisher import metadata_value
from app.uploads.receiver import ChunkSubmission
from conftest import PUBLIC_URL, client_error, scratch_entries

UPLOAD_ID = "upload_1718000000000_k3j9x0a1b"


def split(data: bytes, chunk_size: int) -> list:
    return [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]


async def send(services, parts, index, upload_id=UPLOAD_ID, file_name="first dance.mp4",
               file_type="video/mp4", file_size=None, thumbnail_data=None, payload=None):
    submission = ChunkSubmission(
        upload_id=upload_id,
        chunk_index=index,
        total_chunks=len(parts),
        file_name=file_name,
        file_type=file_type,
        file_size=file_size,
        thumbnail_data=thumbnail_data,
    )
    body = payload if payload is not None else parts[index]
    return await services.receiver.receive(submission, io.BytesIO(body), len(body))


@pytest.mark.asyncio
async def test_large_file_in_four_chunks(services, fake_b2, scratch_root):
    data = os.urandom(10 * 1024 * 1024)
    parts = split(data, 3 * 1024 * 1024)
    assert len(parts) == 4

    responses = []
    for index in range(4):
        responses.append(await send(services, parts, index, file_size=len(data)))

    for index, partial in enumerate(responses[:3]):
        assert partial.success
        assert partial.file is None
        assert partial.message == f"{index + 1}/4 received"
        assert partial.received_chunks == index + 1
        assert partial.total_chunks == 4

    final = responses[3]
    assert final.is_complete
    assert final.message == COMPLETION_MESSAGE
    key = final.file.id
    assert re.fullmatch(r"videos/\d{13}_k3j9x0a1b-[a-z0-9]{9}_first_dance\.mp4", key)
    assert final.file.url == f"{PUBLIC_URL}/{key}"
    assert final.file.size == len(data)
    assert final.file.type == "video/mp4"

    stored = fake_b2.objects[key]
    assert stored["Body"] == data
    assert stored["ContentType"] == "video/mp4"
    assert stored["Metadata"]["upload-method"] == "chunks"
    assert stored["Metadata"]["total-chunks"] == "4"
    assert stored["Metadata"]["original-name"] == "first dance.mp4"

    assert services.registry.count() == 0
    assert scratch_entries(scratch_root) == []


@pytest.mark.asyncio
async def test_out_of_order_chunks_assemble_by_index(services, fake_b2):
    parts = [b"0000", b"1111", b"2222", b"33"]

    for index in (3, 1, 0):
        partial = await send(services, parts, index)
        assert not partial.is_complete
    final = await send(services, parts, 2)

    assert fake_b2.objects[final.file.id]["Body"] == b"".join(parts)


@pytest.mark.asyncio
async def test_no_publish_before_last_chunk(services, boto_client):
    parts = [b"a" * 10] * 4

    for index in range(3):
        await send(services, parts, index)

    boto_client.upload_fileobj.assert_not_called()
    assert services.registry.get(UPLOAD_ID).received_count == 3


@pytest.mark.asyncio
async def test_duplicate_chunk_counted_once(services, fake_b2):
    parts = [b"AAAA", b"BBBB", b"CCCC", b"DDDD"]

    await send(services, parts, 0)
    await send(services, parts, 1)
    await send(services, parts, 2)
    again = await send(services, parts, 2, payload=b"cccc")

    assert not again.is_complete
    assert again.received_chunks == 3

    final = await send(services, parts, 3)
    assert fake_b2.objects[final.file.id]["Body"] == b"AAAABBBBccccDDDD"


@pytest.mark.asyncio
async def test_concurrent_final_chunk_publishes_once(services, boto_client):
    parts = [b"AAAA", b"BBBB", b"CCCC"]
    await send(services, parts, 0)
    await send(services, parts, 1)

    results = await asyncio.gather(
        send(services, parts, 2),
        send(services, parts, 2),
        return_exceptions=True,
    )

    completed = [r for r in results if not isinstance(r, Exception) and r.is_complete]
    assert len(completed) == 1
    assert boto_client.upload_fileobj.call_count == 1


@pytest.mark.asyncio
async def test_chunk_for_closed_session_is_rejected(services):
    parts = [b"AAAA", b"BBBB"]
    await send(services, parts, 0)
    session = services.registry.get(UPLOAD_ID)

    # The second chunk queues on the session lock while the session is torn down
    async with session.lock:
        pending = asyncio.create_task(send(services, parts, 1))
        await asyncio.sleep(0.1)
        await services.registry.close(session, reason="error")

    with pytest.raises(SessionClosedError) as exc_info:
        await pending

    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_storage_failure_cleans_up_session(services, boto_client, scratch_root):
    boto_client.upload_fileobj.side_effect = client_error("NoSuchBucket", "The specified bucket does not exist")
    parts = [b"AAAA", b"BBBB"]
    await send(services, parts, 0)

    with pytest.raises(StorageUploadError) as exc_info:
        await send(services, parts, 1)

    assert exc_info.value.kind == StorageUploadError.BUCKET_NOT_FOUND
    assert exc_info.value.status_code == 502
    assert services.registry.count() == 0
    assert scratch_entries(scratch_root) == []


@pytest.mark.asyncio
async def test_assembly_failure_cleans_up_session(services, boto_client, scratch_root):
    parts = [b"AAAA", b"BB"]
    await send(services, parts, 0, file_size=999)

    with pytest.raises(AssemblyError):
        await send(services, parts, 1, file_size=999)

    boto_client.upload_fileobj.assert_not_called()
    assert services.registry.count() == 0
    assert scratch_entries(scratch_root) == []


@pytest.mark.asyncio
async def test_persist_failure_closes_session(services, scratch_root, monkeypatch):
    async def disk_full(upload_id, index, source):
        raise ChunkPersistError(ChunkPersistError.DISK_SPACE, "[Errno 28] No space left on device")

    monkeypatch.setattr(services.scratch, "write_chunk", disk_full)

    with pytest.raises(ChunkPersistError) as exc_info:
        await send(services, [b"AAAA", b"BBBB"], 0)

    assert exc_info.value.category == ChunkPersistError.DISK_SPACE
    assert services.registry.count() == 0
    assert scratch_entries(scratch_root) == []


@pytest.mark.asyncio
async def test_abandoned_upload_leaves_chunks_until_janitor(services, scratch_root):
    parts = [b"AAAA", b"BBBB", b"CCCC", b"DDDD"]
    for index in range(3):
        await send(services, parts, index)

    session_dir = f"upload_{UPLOAD_ID}"
    assert scratch_entries(scratch_root) == [
        session_dir,
        os.path.join(session_dir, "chunk_0"),
        os.path.join(session_dir, "chunk_1"),
        os.path.join(session_dir, "chunk_2"),
    ]

    services.registry.get(UPLOAD_ID).last_activity -= timedelta(minutes=10)
    await services.janitor.sweep()

    assert services.registry.count() == 0
    assert scratch_entries(scratch_root) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("field,value", [
    ("upload_id", None),
    ("upload_id", "../escape"),
    ("file_name", ""),
    ("total_chunks", 0),
    ("chunk_index", 4),
    ("chunk_index", -1),
    ("file_size", -5),
])
async def test_invalid_submission_rejected_without_session(services, scratch_root, field, value):
    submission = ChunkSubmission(
        upload_id=UPLOAD_ID,
        chunk_index=0,
        total_chunks=4,
        file_name="clip.mp4",
    )
    setattr(submission, field, value)

    with pytest.raises(UploadValidationError) as exc_info:
        await services.receiver.receive(submission, io.BytesIO(b"data"), 4)

    assert exc_info.value.status_code == 400
    assert services.registry.count() == 0
    assert scratch_entries(scratch_root) == []


@pytest.mark.asyncio
async def test_missing_payload_rejected(services):
    submission = ChunkSubmission(upload_id=UPLOAD_ID, chunk_index=0, total_chunks=2, file_name="clip.mp4")

    with pytest.raises(UploadValidationError):
        await services.receiver.receive(submission, None)


@pytest.mark.asyncio
async def test_bad_chunk_does_not_touch_open_session(services):
    parts = [b"AAAA", b"BBBB", b"CCCC"]
    await send(services, parts, 0)

    with pytest.raises(UploadValidationError):
        await send(services, [b"x"] * 5, 4)

    session = services.registry.get(UPLOAD_ID)
    assert session.received_chunks == {0}
    assert session.total_chunks == 3


@pytest.mark.asyncio
async def test_oversized_chunk_rejected(services):
    services.receiver.max_chunk_bytes = 8

    with pytest.raises(ChunkTooLargeError) as exc_info:
        await send(services, [b"x" * 9, b"y"], 0)

    assert exc_info.value.status_code == 413
    assert services.registry.count() == 0


@pytest.mark.asyncio
async def test_ceiling_rejects_fourth_session_until_one_finishes(services):
    parts = [b"AAAA", b"BBBB"]
    for i in range(3):
        await send(services, parts, 0, upload_id=f"upload_171800000000{i}_guest{i}")

    with pytest.raises(AdmissionRejected):
        await send(services, parts, 0, upload_id="upload_1718000000009_guest9")

    await send(services, parts, 1, upload_id="upload_1718000000000_guest0")
    admitted = await send(services, parts, 0, upload_id="upload_1718000000009_guest9")

    assert admitted.success
    assert services.registry.count() == 3


@pytest.mark.asyncio
async def test_same_file_name_in_two_sessions_gets_two_objects(services, fake_b2):
    parts = [b"one"]
    first = await send(services, parts, 0, upload_id="upload_1718000000000_aaaaaaaaa", file_name="IMG_0001.jpg")
    second = await send(services, [b"two"], 0, upload_id="upload_1718000000000_bbbbbbbbb", file_name="IMG_0001.jpg")

    assert first.file.id != second.file.id
    assert fake_b2.objects[first.file.id]["Body"] == b"one"
    assert fake_b2.objects[second.file.id]["Body"] == b"two"


@pytest.mark.asyncio
async def test_reused_upload_id_does_not_overwrite_earlier_file(services, fake_b2):
    # Some browsers restore a cached uploadId when a guest retries a share
    upload_id = "upload_1718000000000_samesame1"
    first_parts = [b"first-", b"video"]
    second_parts = [b"second", b"-clip"]

    await send(services, first_parts, 0, upload_id=upload_id, file_name="IMG.mov")
    first = await send(services, first_parts, 1, upload_id=upload_id, file_name="IMG.mov")
    assert services.registry.count() == 0

    await send(services, second_parts, 0, upload_id=upload_id, file_name="IMG.mov")
    second = await send(services, second_parts, 1, upload_id=upload_id, file_name="IMG.mov")

    assert first.file.id != second.file.id
    assert first.file.id.startswith("videos/")
    assert "_samesame1-" in first.file.id
    assert "_samesame1-" in second.file.id
    assert fake_b2.objects[first.file.id]["Body"] == b"first-video"
    assert fake_b2.objects[second.file.id]["Body"] == b"second-clip"


def test_metadata_value_drops_control_characters():
    assert metadata_value("first\ndance\t.mp4") == "firstdance.mp4"
    assert metadata_value("Überraschung.jpg") == "?berraschung.jpg"


@pytest.mark.asyncio
async def test_control_characters_in_file_name_stay_out_of_metadata(services, fake_b2):
    final = await send(services, [b"AAAA"], 0, file_name="first\r\ndance.mp4")

    stored = fake_b2.objects[final.file.id]
    assert stored["Metadata"]["original-name"] == "firstdance.mp4"
    assert final.file.name == "first\r\ndance.mp4"


@pytest.mark.asyncio
async def test_extension_overrides_declared_type(services, fake_b2):
    final = await send(services, [b"mov"], 0, file_name="IMG_0042.MOV", file_type="video/3gp")

    assert final.file.type == "video/quicktime"
    assert final.file.id.startswith("videos/")
    assert fake_b2.objects[final.file.id]["ContentType"] == "video/quicktime"


@pytest.mark.asyncio
async def test_thumbnail_from_first_chunk_is_published(services, fake_b2):
    thumbnail = "data:image/jpeg;base64," + base64.b64encode(b"tiny-jpeg").decode()
    parts = [b"AAAA", b"BBBB"]

    await send(services, parts, 0, thumbnail_data=thumbnail)
    final = await send(services, parts, 1)

    prefix = final.file.id[len("videos/"):-len("_first_dance.mp4")]
    thumbnail_key = f"thumbnails/{prefix}_first_dance.jpg"
    assert final.file.thumbnail_url == f"{PUBLIC_URL}/{thumbnail_key}"
    assert fake_b2.objects[thumbnail_key]["Body"] == b"tiny-jpeg"
    assert fake_b2.objects[thumbnail_key]["ContentType"] == "image/jpeg"


@pytest.mark.asyncio
async def test_broken_thumbnail_falls_back_to_media_url(services):
    final = await send(services, [b"AAAA"], 0, thumbnail_data="data:image/jpeg;base64,!!not-base64!!")

    assert final.file.thumbnail_url == final.file.url
