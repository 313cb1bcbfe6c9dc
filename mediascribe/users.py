"""Users, their login sessions, and the repository and service that manage them."""

from __future__ import annotations

import time as _time
from dataclasses import dataclass, replace
from typing import Any, Callable

from mediascribe.responses import ApiResponse, ServiceError
from mediascribe.runtime import CallContext, CanisterState, Principal
from mediascribe.utils import DEFAULT_EXPIRED_SESSION, format_timestamp, string_to_fixed

ACTIVE_SESSION_MESSAGE = (
    "There is an active session with this user, please make sure there is only "
    "one device at a time."
)
LOGIN_SUCCESS_MESSAGE = "Login successful"
LOGOUT_SUCCESS_MESSAGE = "Logout Success"


@dataclass(frozen=True)
class UserSession:
    """A login session owned by a principal, valid until ``expired_at`` (ns)."""

    principal: Principal
    expired_at: int

    @classmethod
    def create(cls, principal: Principal, now: int) -> "UserSession":
        """Start a session at ``now`` that lasts the default session length."""
        return cls(principal, now + DEFAULT_EXPIRED_SESSION)

    def is_session_expired(self, now: int) -> bool:
        return self.expired_at < now

    def to_dict(self) -> dict[str, Any]:
        return {
            "principal": self.principal.to_text(),
            "expired_at": format_timestamp(self.expired_at),
        }


@dataclass
class User:
    """A stored user and the session it currently holds, if any."""

    user_id: str
    session: UserSession | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "session": self.session.to_dict() if self.session is not None else None,
        }


@dataclass(frozen=True)
class CreateUserParams:
    """The data needed to register a user for a principal."""

    user_id: str
    principal: Principal

    def to_dict(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "principal": self.principal.to_text()}


class UserRepository:
    """Keeps users and the principal-to-user-id mapping in the service state."""

    def __init__(
        self, state: CanisterState, clock: Callable[[], int] = _time.time_ns
    ) -> None:
        self._state = state
        self._clock = clock

    def create_session(self, principal: Principal) -> UserSession:
        return UserSession.create(principal, self._clock())

    def get_user_id(self, principal: Principal) -> str | None:
        return self._state.principals.get(principal)

    def get_or_create_user_id(self, principal: Principal) -> str:
        """Return the user id of ``principal``, assigning a new one if needed."""
        user_id = self._state.principals.get(principal)
        if user_id is None:
            user_id = CallContext(caller=principal, clock=self._clock).generate_id()
            self._state.principals[principal] = user_id
        return user_id

    def login(self, principal: Principal) -> UserSession:
        """Open a new session, raising ``ServiceError`` if one is still active."""
        session = self.create_session(principal)
        user_id = self.get_or_create_user_id(principal)
        key = string_to_fixed(user_id)

        user = self._state.users.get(key)
        if user is None:
            user = User(user_id, session)
        else:
            current = user.session
            if current is not None and not current.is_session_expired(self._clock()):
                raise ServiceError(ACTIVE_SESSION_MESSAGE)
            user = replace(user, session=session)
        self._state.users[key] = user
        return session

    def logout(self, principal: Principal) -> str:
        """Clear the user's session, if the user exists."""
        user_id = self.get_or_create_user_id(principal)
        key = string_to_fixed(user_id)
        user = self._state.users.get(key)
        if user is not None:
            self._state.users[key] = replace(user, session=None)
        return LOGOUT_SUCCESS_MESSAGE


class UserService:
    """Wraps repository results in API response envelopes."""

    def __init__(self, repository: UserRepository) -> None:
        self._repository = repository

    def login(self, principal: Principal) -> ApiResponse[UserSession]:
        try:
            session = self._repository.login(principal)
        except ServiceError as exc:
            return ApiResponse.error(exc.message)
        return ApiResponse.success(session, LOGIN_SUCCESS_MESSAGE)

    def logout(self, principal: Principal) -> ApiResponse[str]:
        try:
            message = self._repository.logout(principal)
        except ServiceError as exc:
            return ApiResponse.error(exc.message)
        return ApiResponse.success_message(message)

    def get_user_id(self, principal: Principal) -> str | None:
        return self._repository.get_user_id(principal)