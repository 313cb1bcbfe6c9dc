"""Chunked media uploads, stored files, transcriptions and summaries."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field

from mediascribe.http_clients import OllamaClient, RemoteCallError, TranscriptionClient
from mediascribe.jobs import JobStatus
from mediascribe.runtime import CallContext, CanisterState, Principal

logger = logging.getLogger(__name__)

MAX_UPLOAD_SIZE = 100 * 1024 * 1024
ALLOWED_CONTENT_PREFIXES = ("video/", "audio/")
SUMMARY_PROMPT = "Summarize the following text:\n\n"


class UploadError(Exception):
    """An upload, file or transcription request was rejected or failed."""


@dataclass(frozen=True)
class StartUploadRequest:
    filename: str
    content_type: str
    total_size: int
    total_chunks: int


@dataclass(frozen=True)
class UploadChunkRequest:
    session_id: str
    chunk_index: int
    data: bytes


@dataclass
class UploadSession:
    """An upload in progress; empty chunks are the ones not yet received."""

    id: str
    filename: str
    content_type: str
    total_size: int
    total_chunks: int
    owner: Principal
    created_at: int
    uploaded_chunks: list[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class UploadedFile:
    id: str
    filename: str
    content_type: str
    size: int
    data: bytes
    owner: Principal
    uploaded_at: int


class UploadService:
    """Upload, file, transcription and summary operations for one caller."""

    def __init__(
        self,
        state: CanisterState,
        context: CallContext,
        transcription: TranscriptionClient | None = None,
        summarizer: OllamaClient | None = None,
    ) -> None:
        self._state = state
        self._context = context
        self._transcription = transcription if transcription is not None else TranscriptionClient()
        self._summarizer = summarizer if summarizer is not None else OllamaClient()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def _caller(self) -> Principal:
        return self._context.caller

    def start_upload(self, request: StartUploadRequest) -> str:
        """Open an upload session and return its id."""
        if request.total_size > MAX_UPLOAD_SIZE:
            raise UploadError("File size exceeds maximum limit of 100MB")
        if not request.content_type.startswith(ALLOWED_CONTENT_PREFIXES):
            raise UploadError("Invalid content type. Only video and audio files are allowed")

        session_id = self._context.generate_id()
        self._state.upload_sessions[session_id] = UploadSession(
            id=session_id,
            filename=request.filename,
            content_type=request.content_type,
            total_size=request.total_size,
            total_chunks=request.total_chunks,
            owner=self._caller,
            created_at=self._context.time(),
        )
        return session_id

    def upload_chunk(self, request: UploadChunkRequest) -> str:
        """Store one chunk of an open upload session."""
        session = self._state.upload_sessions.get(request.session_id)
        if session is None:
            raise UploadError("Upload session not found")
        if session.owner != self._caller:
            raise UploadError("Unauthorized: You don't own this upload session")
        index = request.chunk_index
        if not 0 <= index < session.total_chunks:
            raise UploadError("Invalid chunk index")
        if len(session.uploaded_chunks) <= index:
            session.uploaded_chunks = [b""] * session.total_chunks
        if session.uploaded_chunks[index]:
            raise UploadError("Chunk already uploaded")
        session.uploaded_chunks[index] = bytes(request.data)
        return "Chunk uploaded successfully"

    def complete_upload(self, session_id: str) -> str:
        """Close a session, assemble its chunks into a stored file and return its id.

        The session is consumed even when assembling fails.
        """
        session = self._state.upload_sessions.pop(session_id, None)
        if session is None:
            raise UploadError("Upload session not found")
        if session.owner != self._caller:
            raise UploadError("Unauthorized: You don't own this upload session")
        if len(session.uploaded_chunks) != session.total_chunks:
            raise UploadError("Not all chunks have been uploaded")
        if not all(session.uploaded_chunks):
            raise UploadError("Missing chunk data")
        data = b"".join(session.uploaded_chunks)
        if len(data) != session.total_size:
            raise UploadError("File size mismatch")

        file_id = self._context.generate_id()
        self._state.uploaded_files[file_id] = UploadedFile(
            id=file_id,
            filename=session.filename,
            content_type=session.content_type,
            size=session.total_size,
            data=data,
            owner=self._caller,
            uploaded_at=self._context.time(),
        )
        return file_id

    def get_upload_status(self, session_id: str) -> tuple[int, int]:
        """Return (chunks received, total chunks) for a session."""
        session = self._state.upload_sessions.get(session_id)
        if session is None:
            raise UploadError("Upload session not found")
        if session.owner != self._caller:
            raise UploadError("Unauthorized")
        received = sum(1 for chunk in session.uploaded_chunks if chunk)
        return received, session.total_chunks

    def get_file(self, file_id: str) -> UploadedFile:
        file = self._state.uploaded_files.get(file_id)
        if file is None:
            raise UploadError("File not found")
        if file.owner != self._caller:
            raise UploadError("Unauthorized")
        return dataclasses.replace(file)

    def list_files(self) -> list[tuple[str, str, str, int]]:
        """List (id, filename, content type, size) of the caller's files, by id."""
        return [
            (f.id, f.filename, f.content_type, f.size)
            for _, f in sorted(self._state.uploaded_files.items())
            if f.owner == self._caller
        ]

    def delete_file(self, file_id: str) -> str:
        file = self._state.uploaded_files.get(file_id)
        if file is None:
            raise UploadError("File not found")
        if file.owner != self._caller:
            raise UploadError("Unauthorized")
        del self._state.uploaded_files[file_id]
        return "File deleted"

    async def start_transcription(self, file_id: str) -> str:
        """Send a stored file for transcription and return the job id."""
        file = self._state.uploaded_files.get(file_id)
        if file is None:
            raise UploadError("File not found")
        try:
            job_id = await self._transcription.submit(file)
        except RemoteCallError as exc:
            raise UploadError(str(exc)) from exc
        self._state.jobs[job_id] = file_id
        return job_id

    def get_transcription(self, file_id: str) -> str:
        try:
            return self._state.transcriptions[file_id]
        except KeyError:
            raise UploadError("No transcription found") from None

    async def get_transcription_status(self, job_id: str) -> JobStatus:
        try:
            return await self._transcription.status(job_id)
        except RemoteCallError as exc:
            raise UploadError(str(exc)) from exc

    async def get_transcription_result(self, job_id: str) -> str:
        """Fetch a job's result and store it as the transcription of its file."""
        try:
            result = await self._transcription.result(job_id)
        except RemoteCallError as exc:
            raise UploadError(str(exc)) from exc
        file_id = self._state.jobs.get(job_id)
        if file_id is None:
            raise UploadError("No file ID found for this job ID")
        self._state.transcriptions[file_id] = result
        return result

    async def start_summarization(self, file_id: str) -> str:
        """Start summarizing a file's transcription in the background; return the job id."""
        job_id = self._context.generate_id()
        self._state.summaries[job_id] = None
        task = asyncio.get_running_loop().create_task(self._summarize(job_id, file_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job_id

    async def _summarize(self, job_id: str, file_id: str) -> None:
        transcription = self._state.transcriptions.get(file_id)
        if transcription is None:
            logger.warning("No transcription found for %s", file_id)
            return
        try:
            summary = await self._summarizer.generate(f"{SUMMARY_PROMPT}{transcription}")
        except RemoteCallError as exc:
            logger.warning("Summary failed: %s", exc)
            return
        self._state.summaries[job_id] = summary

    def get_summary_result(self, job_id: str) -> str:
        summary = self._state.summaries.get(job_id)
        if summary is None:
            raise UploadError("Summary not ready")
        return summary