"""HTTP server that collects uploaded chunks and transcribes them as jobs."""

from __future__ import annotations

import argparse
import asyncio
import functools
import json
import re
import struct
import subprocess
import tempfile
import threading
import uuid
import wave
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from aiohttp import BodyPartReader, web

from mediascribe.jobs import JobState, JobStatus
from mediascribe.whisper import DEFAULT_MODEL_PATH, SAMPLE_RATE, whisper_transcribe

Transcriber = Callable[[bytes], Awaitable[str]]

REQUEST_TIMEOUT = 120.0
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
JOB_STARTED_PREFIX = "Job started with ID: "
_U32_MAX = 2**32 - 1
_I32_MIN, _I32_MAX = -(2**31), 2**31 - 1


class JobRegistry:
    """Thread-safe map from job id to job status."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[str, JobStatus] = {}

    def set(self, job_id: str, status: JobStatus) -> None:
        with self._lock:
            self._jobs[job_id] = status

    def get(self, job_id: str) -> JobStatus | None:
        with self._lock:
            return self._jobs.get(job_id)


def _trim_repeated(text: str, prefix: str, suffix: str) -> str:
    while prefix and text.startswith(prefix):
        text = text[len(prefix) :]
    while suffix and text.endswith(suffix):
        text = text[: -len(suffix)]
    return text


def chunk_sort_key(path: Path | str) -> int:
    """Return the chunk number in a ``chunk_NNNN.part`` name, or 0 if there is none."""
    core = _trim_repeated(Path(path).name, "chunk_", ".part")
    if not re.fullmatch(r"\+?[0-9]+", core):
        return 0
    value = int(core)
    return value if value <= _U32_MAX else 0


def combine_chunks(directory: Path | str) -> bytes:
    """Concatenate every file in ``directory`` in chunk-number order."""
    paths = sorted(Path(directory).iterdir(), key=lambda p: p.name)
    paths.sort(key=chunk_sort_key)
    return b"".join(path.read_bytes() for path in paths)


UPLOADS_KEY = web.AppKey("uploads_dir", Path)
JOBS_KEY = web.AppKey("jobs", JobRegistry)
TRANSCRIBE_KEY = web.AppKey("transcribe", object)
TASKS_KEY = web.AppKey("tasks", set)


def _checked_session_id(session_id: str) -> str:
    if session_id in ("", ".", "..") or Path(session_id).name != session_id or "\\" in session_id:
        raise web.HTTPBadRequest(text="Invalid session_id")
    return session_id


def _parse_chunk_index(raw: str) -> int:
    if not re.fullmatch(r"[+-]?[0-9]+", raw):
        raise ValueError(raw)
    value = int(raw)
    if not _I32_MIN <= value <= _I32_MAX:
        raise ValueError(raw)
    return value


@web.middleware
async def _timeout_middleware(request: web.Request, handler):
    try:
        return await asyncio.wait_for(handler(request), REQUEST_TIMEOUT)
    except asyncio.TimeoutError:
        raise web.HTTPRequestTimeout() from None


async def _upload_chunk(request: web.Request) -> web.Response:
    try:
        reader = await request.multipart()
    except (KeyError, ValueError, AssertionError):
        raise web.HTTPBadRequest(text="Expected a multipart/form-data body") from None

    session_id = ""
    chunk_index = 0
    data = bytearray()
    try:
        async for part in reader:
            if not isinstance(part, BodyPartReader):
                continue
            if part.name == "session_id":
                session_id = await part.text()
            elif part.name == "chunk_index":
                raw = await part.text()
                try:
                    chunk_index = _parse_chunk_index(raw)
                except ValueError:
                    raise web.HTTPBadRequest(text=f"Invalid chunk_index: {raw}") from None
            elif part.name == "file":
                while chunk := await part.read_chunk():
                    data.extend(chunk)
    except ValueError:
        pass  # a malformed body ends the field list

    directory = request.app[UPLOADS_KEY] / _checked_session_id(session_id)
    directory.mkdir(parents=True, exist_ok=True)
    (directory / f"chunk_{chunk_index:04d}.part").write_bytes(bytes(data))
    return web.Response(text=f"Chunk {chunk_index} for session {session_id} uploaded")


async def _run_job(app: web.Application, job_id: str, session_id: str) -> None:
    jobs = app[JOBS_KEY]
    try:
        combined = await asyncio.to_thread(combine_chunks, app[UPLOADS_KEY] / session_id)
    except OSError as exc:
        jobs.set(job_id, JobStatus.failed(f"Failed to read uploaded chunks: {exc}"))
        return

    if not combined:
        jobs.set(job_id, JobStatus.failed("No data found after combining chunks."))
        return

    transcribe: Transcriber = app[TRANSCRIBE_KEY]  # type: ignore[assignment]
    try:
        text = await transcribe(combined)
    except Exception as exc:
        jobs.set(job_id, JobStatus.failed(f"Transcription failed: {exc}"))
    else:
        jobs.set(job_id, JobStatus.completed(text))


async def _finalize_upload(request: web.Request) -> web.Response:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise web.HTTPBadRequest(text="Expected a JSON body") from None
    session_id = payload.get("session_id") if isinstance(payload, dict) else None
    if not isinstance(session_id, str):
        raise web.HTTPBadRequest(text="Missing session_id")
    session_id = _checked_session_id(session_id)

    app = request.app
    job_id = str(uuid.uuid4())
    app[JOBS_KEY].set(job_id, JobStatus.pending())

    tasks: set = app[TASKS_KEY]
    task = asyncio.get_running_loop().create_task(_run_job(app, job_id, session_id))
    tasks.add(task)
    task.add_done_callback(tasks.discard)

    return web.json_response({"message": f"{JOB_STARTED_PREFIX}{job_id}"})


async def _check_status(request: web.Request) -> web.Response:
    status = request.app[JOBS_KEY].get(request.match_info["job_id"])
    if status is None:
        status = JobStatus.failed("Job not found")
    return web.json_response(status.to_dict())


async def _get_result(request: web.Request) -> web.Response:
    status = request.app[JOBS_KEY].get(request.match_info["job_id"])
    if status is not None and status.state is JobState.COMPLETED:
        text = status.data
    elif status is not None and status.state is JobState.FAILED:
        text = f"Error: {status.data}"
    else:
        text = "Job is still pending."
    return web.json_response({"text": text})


async def _cancel_tasks(app: web.Application) -> None:
    tasks = list(app[TASKS_KEY])
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


def create_app(uploads_dir: Path | str, transcribe: Transcriber) -> web.Application:
    """Build the web application storing chunks under ``uploads_dir``."""
    app = web.Application(middlewares=[_timeout_middleware])
    app[UPLOADS_KEY] = Path(uploads_dir)
    app[JOBS_KEY] = JobRegistry()
    app[TRANSCRIBE_KEY] = transcribe
    app[TASKS_KEY] = set()
    app.router.add_post("/upload_chunk", _upload_chunk)
    app.router.add_post("/finalize_upload", _finalize_upload)
    app.router.add_get("/status/{job_id}", _check_status)
    app.router.add_get("/result/{job_id}", _get_result)
    app.on_cleanup.append(_cancel_tasks)
    return app


class _CommandLineEngine:
    """Speech engine that runs a whisper command-line program on a WAV file."""

    def __init__(self, model: str, executable: str, threads: int = 4, language: str = "en") -> None:
        self.model = model
        self.executable = executable
        self.threads = threads
        self.language = language

    def __call__(self, samples: list[float]) -> list[str]:
        pcm = struct.pack(
            f"<{len(samples)}h",
            *(round(max(-1.0, min(1.0, s)) * 32767) for s in samples),
        )
        with tempfile.TemporaryDirectory() as tmp:
            wav_path = Path(tmp) / "audio.wav"
            with wave.open(str(wav_path), "wb") as out:
                out.setnchannels(1)
                out.setsampwidth(2)
                out.setframerate(SAMPLE_RATE)
                out.writeframes(pcm)
            completed = subprocess.run(
                [
                    self.executable,
                    "-m",
                    self.model,
                    "-f",
                    str(wav_path),
                    "-l",
                    self.language,
                    "-t",
                    str(self.threads),
                    "-nt",
                ],
                capture_output=True,
                check=False,
            )
        if completed.returncode != 0:
            detail = completed.stderr.decode("utf-8", errors="replace").strip()
            raise RuntimeError(f"{self.executable} exited with status {completed.returncode}: {detail}")
        lines = completed.stdout.decode("utf-8", errors="replace").splitlines()
        return [line.strip() for line in lines if line.strip()]


def main(argv: Sequence[str] | None = None) -> None:
    """Run the transcription server."""
    parser = argparse.ArgumentParser(description="Chunked upload transcription server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--uploads", default="uploads", help="directory for uploaded chunks")
    parser.add_argument("--model", default=DEFAULT_MODEL_PATH, help="speech model file")
    parser.add_argument("--whisper-cli", default="whisper-cli", help="speech recognizer program")
    args = parser.parse_args(argv)

    engine = _CommandLineEngine(args.model, args.whisper_cli)
    app = create_app(args.uploads, functools.partial(whisper_transcribe, engine=engine))
    print(f"Server running at http://{args.host}:{args.port}")
    web.run_app(app, host=args.host, port=args.port, print=None)


if __name__ == "__main__":
    main()