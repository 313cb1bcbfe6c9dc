"""Response envelopes and error kinds returned by the backend services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from mediascribe.utils import to_json_format

T = TypeVar("T")


@dataclass
class ApiResponse(Generic[T]):
    """A JSON envelope holding optional data and an optional message."""

    data: T | None = None
    message: str | None = None

    @classmethod
    def success(cls, data: T, message: str) -> "ApiResponse[T]":
        return cls(data=data, message=str(message))

    @classmethod
    def success_message(cls, message: str) -> "ApiResponse[T]":
        return cls(data=None, message=str(message))

    @classmethod
    def error(cls, message: str) -> "ApiResponse[T]":
        return cls(data=None, message=str(message))

    @classmethod
    def error_message(cls, message: str) -> str:
        """Return an error envelope already rendered as JSON."""
        return to_json_format(cls.error(message))

    def to_dict(self) -> dict[str, Any]:
        """Return the envelope, leaving out fields that are unset."""
        result: dict[str, Any] = {}
        if self.data is not None:
            result["data"] = self.data
        if self.message is not None:
            result["message"] = self.message
        return result


class ErrorResponse(Enum):
    """Validation failures with their user-facing messages."""

    MISSING_REQUIRED_FIELD = "Input Validation Error, Please fill all the input"
    INVALID_DATE = "Invalid Date Error, Please make sure the date time is correct"
    INVALID_FORMAT = "Invalid Format Error, Please make sure the format is correct"

    @property
    def message(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


class ServiceError(Exception):
    """A service-level failure carrying a message for the caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message