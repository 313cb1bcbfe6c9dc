"""Caller identity, per-call context, record encoding and the service state."""

from __future__ import annotations

import base64
import json
import secrets
import time as _time
import zlib
from dataclasses import InitVar, dataclass, field
from typing import Any, Callable

from mediascribe.utils import (
    DEFAULT_MAX_VALUE_SIZE,
    SEED_SIZE,
    RandomSource,
    json_default,
)

_MAX_PRINCIPAL_BYTES = 29
_ANONYMOUS_BYTES = b"\x04"


@dataclass(frozen=True, order=True)
class Principal:
    """An opaque caller identity with the usual checksummed base32 text form."""

    raw: bytes

    def __post_init__(self) -> None:
        raw = bytes(self.raw)
        if len(raw) > _MAX_PRINCIPAL_BYTES:
            raise ValueError(f"principal is longer than {_MAX_PRINCIPAL_BYTES} bytes")
        object.__setattr__(self, "raw", raw)

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(_ANONYMOUS_BYTES)

    @classmethod
    def from_text(cls, text: str) -> "Principal":
        """Parse the dashed base32 text form, checking its checksum."""
        compact = text.replace("-", "").upper()
        padded = compact + "=" * (-len(compact) % 8)
        try:
            decoded = base64.b32decode(padded)
        except (ValueError, base64.binascii.Error) as exc:
            raise ValueError(f"invalid principal text: {text!r}") from exc
        if len(decoded) < 4:
            raise ValueError(f"invalid principal text: {text!r}")
        checksum, raw = decoded[:4], decoded[4:]
        if zlib.crc32(raw).to_bytes(4, "big") != checksum:
            raise ValueError(f"principal checksum mismatch: {text!r}")
        principal = cls(raw)
        if principal.to_text() != text.lower():
            raise ValueError(f"principal text is not canonical: {text!r}")
        return principal

    def is_anonymous(self) -> bool:
        return self.raw == _ANONYMOUS_BYTES

    def to_text(self) -> str:
        data = zlib.crc32(self.raw).to_bytes(4, "big") + self.raw
        encoded = base64.b32encode(data).decode("ascii").lower().rstrip("=")
        return "-".join(encoded[i : i + 5] for i in range(0, len(encoded), 5))

    def __str__(self) -> str:
        return self.to_text()


@dataclass(frozen=True)
class CallContext:
    """Who is calling and what the clock reads, in nanoseconds."""

    caller: Principal = field(default_factory=Principal.anonymous)
    clock: Callable[[], int] = _time.time_ns

    def time(self) -> int:
        return self.clock()

    def generate_id(self) -> str:
        """Build an identifier from the current time and the caller."""
        return f"{self.time()}-{self.caller.to_text()}"


class StorageError(Exception):
    """A record could not be encoded for storage."""


def encode_record(record: Any) -> bytes:
    """Encode a record to bytes, enforcing the stored value size bound."""
    name = type(record).__name__
    try:
        encoded = json.dumps(
            record, default=json_default, ensure_ascii=False, separators=(",", ":")
        ).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise StorageError(f"Failed to encode {name}: {exc}") from exc
    if len(encoded) > DEFAULT_MAX_VALUE_SIZE:
        raise StorageError(
            f"Failed to encode {name}: {len(encoded)} bytes exceeds "
            f"the limit of {DEFAULT_MAX_VALUE_SIZE}"
        )
    return encoded


@dataclass
class CanisterState:
    """All stored maps of the backend together with its random source."""

    users: dict[bytes, Any] = field(default_factory=dict)
    principals: dict[Principal, str] = field(default_factory=dict)
    upload_sessions: dict[str, Any] = field(default_factory=dict)
    uploaded_files: dict[str, Any] = field(default_factory=dict)
    transcriptions: dict[str, str] = field(default_factory=dict)
    jobs: dict[str, str] = field(default_factory=dict)
    summaries: dict[str, str | None] = field(default_factory=dict)
    rng: RandomSource = field(default_factory=RandomSource)
    seed: InitVar[bytes | None] = None

    def __post_init__(self, seed: bytes | None) -> None:
        self.rng.seed(seed if seed is not None else secrets.token_bytes(SEED_SIZE))

    def post_upgrade(self, seed: bytes | None = None) -> None:
        """Reseed the random source; stored data is kept."""
        self.rng.seed(seed if seed is not None else secrets.token_bytes(SEED_SIZE))