"""Base classes for use cases and the helpers that run them."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from mediascribe.responses import ApiResponse

ANONYMOUS_MESSAGE = "Anonymous users cannot access this service."


class AuthenticationRequirement(Enum):
    """Whether a use case insists on an authenticated caller."""

    REQUIRED = "required"
    OPTIONAL = "optional"


class UseCase(ABC):
    """A use case that produces a JSON string."""

    @abstractmethod
    def call(self) -> str:
        """Run the use case."""


class UseCaseRequireAuth(ABC):
    """A use case that may reject anonymous callers."""

    @abstractmethod
    def call(
        self,
        authentication_requirement: AuthenticationRequirement = AuthenticationRequirement.OPTIONAL,
    ) -> str:
        """Run the use case under the given authentication requirement."""

    def is_anonymous(self, principal: Any) -> bool:
        return principal.is_anonymous()

    def handle_anonymous(self) -> str:
        return ApiResponse.error_message(ANONYMOUS_MESSAGE)


async def run_usecase(usecase: UseCase) -> str:
    """Run a use case that needs no authentication."""
    return usecase.call()


async def run_usecase_require_auth(usecase: UseCaseRequireAuth) -> str:
    """Run a use case with authentication required."""
    return usecase.call(AuthenticationRequirement.REQUIRED)