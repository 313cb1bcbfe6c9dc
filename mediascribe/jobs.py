"""Status of a transcription job as exchanged with the transcription server."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class JobState(Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"


@dataclass(frozen=True)
class JobStatus:
    """A job's state; completed jobs carry text, failed ones an error message."""

    state: JobState
    data: str | None = None

    def __post_init__(self) -> None:
        if self.state is JobState.PENDING:
            if self.data is not None:
                raise ValueError("a pending job carries no data")
        elif not isinstance(self.data, str):
            raise ValueError(f"a {self.state.value} job needs a string payload")

    @classmethod
    def pending(cls) -> "JobStatus":
        return cls(JobState.PENDING)

    @classmethod
    def completed(cls, text: str) -> "JobStatus":
        return cls(JobState.COMPLETED, text)

    @classmethod
    def failed(cls, error: str) -> "JobStatus":
        return cls(JobState.FAILED, error)

    def to_dict(self) -> dict[str, Any]:
        """Return the tagged form: ``{"status": ..., "data": ...}``."""
        if self.state is JobState.PENDING:
            return {"status": self.state.value}
        return {"status": self.state.value, "data": self.data}

    @classmethod
    def from_dict(cls, data: Any) -> "JobStatus":
        """Parse the tagged form, raising ``ValueError`` on anything else."""
        if not isinstance(data, dict):
            raise ValueError("job status must be an object")
        try:
            state = JobState(data.get("status"))
        except ValueError as exc:
            raise ValueError(f"unknown job status: {data.get('status')!r}") from exc
        return cls(state, data.get("data"))