"""HTTP clients for the language-model summarizer and the transcription server."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol

import httpx

from mediascribe.jobs import JobStatus
from mediascribe.utils import OLLAMA_URL, TRANSCRIPTION_URL

logger = logging.getLogger(__name__)

BOUNDARY = "----ic_boundary"
CHUNK_SIZE = 1_900_000
MAX_RESPONSE_BYTES = 2_000_000
BASE_CYCLES = 400_000_000
CYCLES_PER_BYTE = 600_000
OLLAMA_MODEL = "llama3.1:8b"
JOB_STARTED_PREFIX = "Job started with ID: "
DEFAULT_TIMEOUT = 120.0


class RemoteCallError(Exception):
    """A call to a remote HTTP service failed or returned something unusable."""


class _TransportError(Exception):
    """The request could not be completed at all."""


class UploadableFile(Protocol):
    id: str
    filename: str
    content_type: str
    data: bytes


def estimate_cycles(request_size: int, response_size: int) -> int:
    """Estimate the cost of an outbound HTTP request of the given sizes."""
    return BASE_CYCLES + (request_size + response_size) * CYCLES_PER_BYTE


def build_chunk_body(
    session_id: str,
    chunk_index: int,
    filename: str,
    content_type: str,
    chunk: bytes,
) -> bytes:
    """Build the multipart/form-data body that carries one file chunk."""
    delimiter = f"--{BOUNDARY}\r\n".encode()
    return b"".join(
        [
            delimiter,
            b'Content-Disposition: form-data; name="session_id"\r\n\r\n',
            session_id.encode("utf-8"),
            b"\r\n",
            delimiter,
            b'Content-Disposition: form-data; name="chunk_index"\r\n\r\n',
            str(chunk_index).encode("ascii"),
            b"\r\n",
            delimiter,
            f'Content-Disposition: form-data; name="file"; filename="{filename}"\r\n'.encode(
                "utf-8"
            ),
            f"Content-Type: {content_type}\r\n\r\n".encode("utf-8"),
            bytes(chunk),
            b"\r\n",
            f"--{BOUNDARY}--\r\n".encode(),
        ]
    )


def _json_bytes(value: Any) -> bytes:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


class _HttpCaller:
    def __init__(self, client: httpx.AsyncClient | None, timeout: float) -> None:
        self._client = client
        self._timeout = timeout

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                yield client

    @staticmethod
    async def _send(
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        request_size = len(content) if content else 0
        logger.debug(
            "Estimated cycles for HTTP request: %d (request_size: %d bytes)",
            estimate_cycles(request_size, MAX_RESPONSE_BYTES),
            request_size,
        )
        try:
            response = await client.request(method, url, content=content, headers=headers)
        except httpx.HTTPError as exc:
            raise _TransportError(f"{type(exc).__name__}: {exc}") from exc
        if len(response.content) > MAX_RESPONSE_BYTES:
            raise _TransportError(
                f"response of {len(response.content)} bytes exceeds "
                f"the limit of {MAX_RESPONSE_BYTES}"
            )
        return response


class OllamaClient(_HttpCaller):
    """Sends prompts to a text-generation endpoint and returns its answer."""

    def __init__(
        self,
        url: str = OLLAMA_URL,
        client: httpx.AsyncClient | None = None,
        model: str = OLLAMA_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(client, timeout)
        self.url = url
        self.model = model

    async def generate(self, prompt: str) -> str:
        """Return the generated text for ``prompt``."""
        body = _json_bytes({"model": self.model, "prompt": prompt, "stream": False})
        async with self._session() as client:
            try:
                response = await self._send(
                    client,
                    "POST",
                    self.url,
                    content=body,
                    headers={"Content-Type": "application/json"},
                )
            except _TransportError as exc:
                raise RemoteCallError(f"Failed to connect to Ollama: {exc}") from exc

        if response.status_code != 200:
            raise RemoteCallError(f"Ollama API error: {response.status_code}")
        try:
            text = response.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RemoteCallError(f"Failed to parse response body: {exc}") from exc
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RemoteCallError(f"Failed to parse JSON response: {exc}") from exc

        answer = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(answer, str):
            raise RemoteCallError("No 'response' field found in Ollama API response")
        return answer


class TranscriptionClient(_HttpCaller):
    """Uploads media to the transcription server and follows its jobs."""

    def __init__(
        self,
        base_url: str = TRANSCRIPTION_URL,
        client: httpx.AsyncClient | None = None,
        chunk_size: int = CHUNK_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        super().__init__(client, timeout)
        self.base_url = base_url.rstrip("/")
        self.chunk_size = chunk_size

    async def submit(self, file: UploadableFile) -> str:
        """Upload ``file`` in chunks, start its transcription and return the job id."""
        session_id = file.id
        data = bytes(file.data)
        async with self._session() as client:
            for chunk_index, offset in enumerate(range(0, len(data), self.chunk_size)):
                body = build_chunk_body(
                    session_id,
                    chunk_index,
                    file.filename,
                    file.content_type,
                    data[offset : offset + self.chunk_size],
                )
                try:
                    await self._send(
                        client,
                        "POST",
                        f"{self.base_url}/upload_chunk",
                        content=body,
                        headers={
                            "Content-Type": f"multipart/form-data; boundary={BOUNDARY}"
                        },
                    )
                except _TransportError as exc:
                    raise RemoteCallError(
                        f"Chunk {chunk_index} upload failed: {exc}"
                    ) from exc

            try:
                response = await self._send(
                    client,
                    "POST",
                    f"{self.base_url}/finalize_upload",
                    content=_json_bytes({"session_id": session_id}),
                    headers={"Content-Type": "application/json"},
                )
            except _TransportError as exc:
                raise RemoteCallError(f"Finalize request failed: {exc}") from exc

        try:
            text = response.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RemoteCallError("Invalid UTF-8 in finalize response") from exc
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RemoteCallError("Invalid JSON in finalize response") from exc

        message = payload.get("message") if isinstance(payload, dict) else None
        if not isinstance(message, str) or not message.startswith(JOB_STARTED_PREFIX):
            raise RemoteCallError("Missing job_id in finalize response")
        return message[len(JOB_STARTED_PREFIX) :]

    async def status(self, job_id: str) -> JobStatus:
        """Ask the server for the status of ``job_id``."""
        text = await self._get_text(f"{self.base_url}/status/{job_id}", "Status", "status")
        try:
            return JobStatus.from_dict(json.loads(text))
        except ValueError as exc:
            raise RemoteCallError(f"Invalid JSON: {exc}") from exc

    async def result(self, job_id: str) -> str:
        """Return the raw body of the server's result for ``job_id``."""
        return await self._get_text(f"{self.base_url}/result/{job_id}", "Result", "result")

    async def _get_text(self, url: str, label: str, kind: str) -> str:
        async with self._session() as client:
            try:
                response = await self._send(client, "GET", url)
            except _TransportError as exc:
                raise RemoteCallError(f"{label} request failed: {exc}") from exc
        try:
            return response.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RemoteCallError(f"Invalid UTF-8 in {kind} response") from exc