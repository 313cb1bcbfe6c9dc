import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

import aiohttp
import pytest
from aiohttp.test_utils import TestClient, TestServer

from mediascribe.jobs import JobStatus
from mediascribe.server import (
    JobRegistry,
    chunk_sort_key,
    combine_chunks,
    create_app,
    main,
)

PREFIX = "Job started with ID: "


@asynccontextmanager
async def _client(uploads, transcribe):
    app = create_app(uploads, transcribe)
    async with TestClient(TestServer(app)) as client:
        yield client


async def _upper(data: bytes) -> str:
    return data.decode().upper()


async def _post_chunk(client, session_id, index, payload):
    form = aiohttp.FormData()
    form.add_field("session_id", session_id)
    form.add_field("chunk_index", str(index))
    form.add_field("file", payload, filename="clip.mp4", content_type="video/mp4")
    return await client.post("/upload_chunk", data=form)


async def _start_job(client, session_id):
    resp = await client.post("/finalize_upload", json={"session_id": session_id})
    assert resp.status == 200
    message = (await resp.json())["message"]
    assert message.startswith(PREFIX)
    return message[len(PREFIX):]


async def _wait_for_job(client, job_id):
    for _ in range(300):
        body = await (await client.get(f"/status/{job_id}")).json()
        if body["status"] != "Pending":
            return body
        await asyncio.sleep(0.01)
    raise AssertionError("job did not finish")


def test_chunk_sort_key_reads_number():
    assert chunk_sort_key(Path("chunk_0007.part")) == 7


def test_chunk_sort_key_unparsable_is_zero():
    assert chunk_sort_key("notes.txt") == 0
    assert chunk_sort_key("chunk_abc.part") == 0
    assert chunk_sort_key("chunk_-1.part") == 0


def test_combine_chunks_orders_numerically(tmp_path):
    (tmp_path / "chunk_10.part").write_bytes(b"c")
    (tmp_path / "chunk_2.part").write_bytes(b"b")
    (tmp_path / "chunk_1.part").write_bytes(b"a")
    assert combine_chunks(tmp_path) == b"abc"


def test_combine_chunks_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        combine_chunks(tmp_path / "absent")


def test_job_registry_set_and_get():
    registry = JobRegistry()
    assert registry.get("j") is None
    registry.set("j", JobStatus.pending())
    registry.set("j", JobStatus.completed("done"))
    assert registry.get("j") == JobStatus.completed("done")


def test_main_rejects_bad_port():
    with pytest.raises(SystemExit):
        main(["--port", "notanumber"])


@pytest.mark.asyncio
async def test_upload_chunk_writes_padded_file(tmp_path):
    async with _client(tmp_path, _upper) as client:
        resp = await _post_chunk(client, "s1", 3, b"abc")
        assert resp.status == 200
        assert await resp.text() == "Chunk 3 for session s1 uploaded"
    assert (tmp_path / "s1" / "chunk_0003.part").read_bytes() == b"abc"


@pytest.mark.asyncio
async def test_upload_chunk_rejects_bad_index(tmp_path):
    async with _client(tmp_path, _upper) as client:
        resp = await _post_chunk(client, "s1", "x", b"abc")
        assert resp.status == 400


@pytest.mark.asyncio
async def test_full_job_completes(tmp_path):
    async with _client(tmp_path, _upper) as client:
        await _post_chunk(client, "s2", 1, b"def")
        await _post_chunk(client, "s2", 0, b"abc")
        job_id = await _start_job(client, "s2")
        body = await _wait_for_job(client, job_id)
        assert body == {"status": "Completed", "data": "ABCDEF"}
        result = await (await client.get(f"/result/{job_id}")).json()
        assert result == {"text": "ABCDEF"}


@pytest.mark.asyncio
async def test_empty_session_fails(tmp_path):
    (tmp_path / "empty").mkdir()
    async with _client(tmp_path, _upper) as client:
        job_id = await _start_job(client, "empty")
        body = await _wait_for_job(client, job_id)
        assert body == {"status": "Failed", "data": "No data found after combining chunks."}
        result = await (await client.get(f"/result/{job_id}")).json()
        assert result == {"text": "Error: No data found after combining chunks."}


@pytest.mark.asyncio
async def test_transcriber_failure_is_reported(tmp_path):
    async def failing(data):
        raise RuntimeError("boom")

    async with _client(tmp_path, failing) as client:
        await _post_chunk(client, "s3", 0, b"abc")
        job_id = await _start_job(client, "s3")
        body = await _wait_for_job(client, job_id)
        assert body == {"status": "Failed", "data": "Transcription failed: boom"}


@pytest.mark.asyncio
async def test_pending_job_reports_pending(tmp_path):
    release = asyncio.Event()

    async def slow(data):
        await release.wait()
        return "later"

    async with _client(tmp_path, slow) as client:
        await _post_chunk(client, "s4", 0, b"abc")
        job_id = await _start_job(client, "s4")
        status = await (await client.get(f"/status/{job_id}")).json()
        assert status == {"status": "Pending"}
        result = await (await client.get(f"/result/{job_id}")).json()
        assert result == {"text": "Job is still pending."}
        release.set()
        body = await _wait_for_job(client, job_id)
        assert body == {"status": "Completed", "data": "later"}


@pytest.mark.asyncio
async def test_unknown_job(tmp_path):
    async with _client(tmp_path, _upper) as client:
        status = await (await client.get("/status/nope")).json()
        assert status == {"status": "Failed", "data": "Job not found"}
        result = await (await client.get("/result/nope")).json()
        assert result == {"text": "Job is still pending."}


@pytest.mark.asyncio
async def test_finalize_requires_session_id(tmp_path):
    async with _client(tmp_path, _upper) as client:
        resp = await client.post("/finalize_upload", json={"other": 1})
        assert resp.status == 400


@pytest.mark.asyncio
async def test_job_ids_are_unique(tmp_path):
    (tmp_path / "empty").mkdir()
    async with _client(tmp_path, _upper) as client:
        first = await _start_job(client, "empty")
        second = await _start_job(client, "empty")
        assert first != second
        assert (await _wait_for_job(client, first))["status"] == "Failed"
        assert (await _wait_for_job(client, second))["status"] == "Failed"