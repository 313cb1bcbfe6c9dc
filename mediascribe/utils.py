"""Shared helpers: fixed-width strings, JSON output, timestamps and randomness."""

from __future__ import annotations

import dataclasses
import json
import random
from datetime import datetime, timezone
from enum import Enum
from typing import Any

DEFAULT_MAX_VALUE_SIZE = 2_000_000
DEFAULT_NANOS_TIME = 1_000_000_000
DEFAULT_EXPIRED_SESSION = 3 * 60 * 60 * DEFAULT_NANOS_TIME  # three hours

OLLAMA_URL = "http://localhost:11434/api/generate"
TRANSCRIPTION_URL = "http://localhost:3000"

FIXED_STRING_SIZE = 32
SEED_SIZE = 32


def string_to_fixed(s: str) -> bytes:
    """Encode ``s`` as UTF-8 into exactly 32 bytes, truncating or zero-padding."""
    encoded = s.encode("utf-8")[:FIXED_STRING_SIZE]
    return encoded.ljust(FIXED_STRING_SIZE, b"\x00")


def fixed_to_string(fixed: bytes) -> str:
    """Decode the bytes before the first zero byte; invalid UTF-8 gives ``""``."""
    head, _, _ = bytes(fixed).partition(b"\x00")
    try:
        return head.decode("utf-8")
    except UnicodeDecodeError:
        return ""


def json_default(obj: Any) -> Any:
    """Turn package objects into values the json module can write."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (bytes, bytearray)):
        return list(obj)
    if hasattr(obj, "to_text"):
        return obj.to_text()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def to_json_format(obj: Any) -> str:
    """Render ``obj`` as pretty-printed JSON with two-space indentation."""
    return json.dumps(obj, indent=2, ensure_ascii=False, default=json_default)


def format_timestamp(timestamp_ns: int) -> str:
    """Format a nanosecond Unix timestamp as an RFC 3339 UTC date, whole seconds."""
    if timestamp_ns < 0:
        raise ValueError("Invalid timestamp format")
    seconds = timestamp_ns // DEFAULT_NANOS_TIME
    try:
        moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError("Invalid timestamp format") from exc
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


class RandomSource:
    """A seedable byte generator that refuses to work until it has been seeded."""

    def __init__(self) -> None:
        self._rng: random.Random | None = None

    @property
    def is_seeded(self) -> bool:
        return self._rng is not None

    def seed(self, seed: bytes) -> None:
        """Seed the generator from exactly 32 bytes."""
        seed = bytes(seed)
        if len(seed) != SEED_SIZE:
            raise ValueError(f"seed must be {SEED_SIZE} bytes, got {len(seed)}")
        self._rng = random.Random(int.from_bytes(seed, "big"))

    def fill_bytes(self, size: int) -> bytes:
        """Return ``size`` random bytes."""
        if self._rng is None:
            raise RuntimeError("random number generator is not seeded")
        if size < 0:
            raise ValueError("size must not be negative")
        return self._rng.randbytes(size)