"""Audio extraction with ffmpeg and speech-to-text through a pluggable engine."""

from __future__ import annotations

import asyncio
import struct
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Iterable

DEFAULT_MODEL_PATH = "src/transcribe/assets/models/ggml-base.en.bin"
SAMPLE_RATE = 16000
_I16_MAX = 32767

SpeechEngine = Callable[[list[float]], Iterable[str]]


class TranscriptionError(Exception):
    """Turning media into text failed."""


def extract_audio_from_video(video_data: bytes) -> bytes:
    """Run ffmpeg over ``video_data`` and return mono 16 kHz WAV bytes.

    The exit status of ffmpeg is not checked; whatever it wrote is returned.
    Raises ``OSError`` if ffmpeg cannot be started.
    """
    with tempfile.TemporaryDirectory() as tmp:
        source = Path(tmp) / "input"
        source.write_bytes(bytes(video_data))
        completed = subprocess.run(
            [
                "ffmpeg",
                "-i",
                str(source),
                "-vn",
                "-ac",
                "1",
                "-ar",
                str(SAMPLE_RATE),
                "-f",
                "wav",
                "pipe:1",
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    return completed.stdout or b""


def extract_samples(data: bytes) -> list[float]:
    """Read little-endian signed 16-bit values as floats scaled by 1/32767.

    A trailing odd byte is ignored.
    """
    even = bytes(data[: len(data) // 2 * 2])
    return [value / _I16_MAX for (value,) in struct.iter_unpack("<h", even)]


async def whisper_transcribe(video_data: bytes, engine: SpeechEngine) -> str:
    """Extract the audio of ``video_data`` and return the engine's text for it.

    Segments are joined with single spaces and the result is trimmed.
    """
    try:
        audio_wav = await asyncio.to_thread(extract_audio_from_video, video_data)
    except OSError as exc:
        raise TranscriptionError(str(exc)) from exc

    samples = extract_samples(audio_wav)

    def _run() -> str:
        return "".join(f"{segment} " for segment in engine(samples))

    try:
        text = await asyncio.to_thread(_run)
    except TranscriptionError:
        raise
    except Exception as exc:
        raise TranscriptionError(f"Transcription failed: {exc}") from exc
    return text.strip()