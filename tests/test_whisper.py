import subprocess
from pathlib import Path
from unittest import mock

import pytest

from mediascribe.whisper import (
    TranscriptionError,
    extract_audio_from_video,
    extract_samples,
    whisper_transcribe,
)


def _completed(stdout: bytes) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["ffmpeg"], returncode=0, stdout=stdout)


def test_extract_samples_scales_extremes():
    assert extract_samples(b"\x00\x00\xff\x7f\x01\x80") == [0.0, 1.0, -1.0]


def test_extract_samples_ignores_trailing_byte():
    assert extract_samples(b"\xff\x7f\x05") == [1.0]


def test_extract_samples_empty():
    assert extract_samples(b"") == []


def test_extract_samples_length_is_half_of_even_prefix():
    data = bytes(range(11))
    assert len(extract_samples(data)) == 5


def test_extract_audio_runs_ffmpeg_with_mono_16k_wav():
    seen = {}

    def fake_run(cmd, **kwargs):
        seen["cmd"] = cmd
        seen["input"] = Path(cmd[2]).read_bytes()
        seen["kwargs"] = kwargs
        return _completed(b"RIFFwav")

    with mock.patch("mediascribe.whisper.subprocess.run", side_effect=fake_run):
        result = extract_audio_from_video(b"video bytes")

    assert result == b"RIFFwav"
    assert seen["input"] == b"video bytes"
    cmd = seen["cmd"]
    assert cmd[0] == "ffmpeg"
    assert cmd[3:] == ["-vn", "-ac", "1", "-ar", "16000", "-f", "wav", "pipe:1"]
    assert seen["kwargs"]["stdout"] == subprocess.PIPE


def test_extract_audio_removes_temporary_input():
    paths = []

    def fake_run(cmd, **kwargs):
        paths.append(Path(cmd[2]))
        return _completed(b"")

    with mock.patch("mediascribe.whisper.subprocess.run", side_effect=fake_run):
        assert extract_audio_from_video(b"x") == b""
    assert not paths[0].exists()


def test_extract_audio_missing_ffmpeg_raises():
    with mock.patch(
        "mediascribe.whisper.subprocess.run", side_effect=FileNotFoundError("ffmpeg")
    ):
        with pytest.raises(FileNotFoundError):
            extract_audio_from_video(b"x")


@pytest.mark.asyncio
async def test_whisper_transcribe_joins_segments():
    received = []

    def engine(samples):
        received.append(samples)
        return ["Hello", "world"]

    with mock.patch(
        "mediascribe.whisper.subprocess.run", return_value=_completed(b"\xff\x7f\x00\x00")
    ):
        text = await whisper_transcribe(b"video", engine)

    assert text == "Hello world"
    assert received == [[1.0, 0.0]]


@pytest.mark.asyncio
async def test_whisper_transcribe_no_segments_gives_empty_text():
    with mock.patch("mediascribe.whisper.subprocess.run", return_value=_completed(b"")):
        text = await whisper_transcribe(b"video", lambda samples: [])
    assert text == ""


@pytest.mark.asyncio
async def test_whisper_transcribe_wraps_engine_failure():
    def engine(samples):
        raise ValueError("bad")

    with mock.patch("mediascribe.whisper.subprocess.run", return_value=_completed(b"")):
        with pytest.raises(TranscriptionError, match="Transcription failed: bad"):
            await whisper_transcribe(b"video", engine)


@pytest.mark.asyncio
async def test_whisper_transcribe_reports_missing_ffmpeg():
    with mock.patch(
        "mediascribe.whisper.subprocess.run", side_effect=FileNotFoundError("ffmpeg")
    ):
        with pytest.raises(TranscriptionError, match="ffmpeg"):
            await whisper_transcribe(b"video", lambda samples: ["never"])