"""Use cases for looking up users and logging them in and out."""

from __future__ import annotations

from mediascribe.runtime import CallContext, Principal
from mediascribe.usecase import (
    AuthenticationRequirement,
    UseCase,
    UseCaseRequireAuth,
    run_usecase,
    run_usecase_require_auth,
)
from mediascribe.users import UserService
from mediascribe.utils import to_json_format


class GetUserIdUsecase(UseCase):
    """Look up the user id of a principal, rendered as JSON (``null`` if none)."""

    def __init__(self, user_service: UserService, principal: Principal) -> None:
        self._user_service = user_service
        self._principal = principal

    def call(self) -> str:
        return to_json_format(self._user_service.get_user_id(self._principal))


class _CallerUsecase(UseCaseRequireAuth):
    def __init__(self, user_service: UserService, context: CallContext) -> None:
        self._user_service = user_service
        self._context = context

    def _run(self, principal: Principal) -> str:
        raise NotImplementedError

    def call(
        self,
        authentication_requirement: AuthenticationRequirement = AuthenticationRequirement.OPTIONAL,
    ) -> str:
        principal = self._context.caller
        if (
            authentication_requirement is AuthenticationRequirement.REQUIRED
            and self.is_anonymous(principal)
        ):
            return self.handle_anonymous()
        return self._run(principal)


class LoginUsecase(_CallerUsecase):
    """Log the calling principal in."""

    def call(
        self,
        authentication_requirement: AuthenticationRequirement = AuthenticationRequirement.OPTIONAL,
    ) -> str:
        return super().call(authentication_requirement)

    def is_anonymous(self, principal: Principal) -> bool:
        return principal.is_anonymous()

    def handle_anonymous(self) -> str:
        return super().handle_anonymous()

    def _run(self, principal: Principal) -> str:
        return to_json_format(self._user_service.login(principal))


class LogoutUsecase(_CallerUsecase):
    """Log the calling principal out."""

    def call(
        self,
        authentication_requirement: AuthenticationRequirement = AuthenticationRequirement.OPTIONAL,
    ) -> str:
        return super().call(authentication_requirement)

    def is_anonymous(self, principal: Principal) -> bool:
        return principal.is_anonymous()

    def handle_anonymous(self) -> str:
        return super().handle_anonymous()

    def _run(self, principal: Principal) -> str:
        return to_json_format(self._user_service.logout(principal))


async def get_user_id(service: UserService, principal: Principal) -> str:
    return await run_usecase(GetUserIdUsecase(service, principal))


async def login(service: UserService, context: CallContext) -> str:
    return await run_usecase_require_auth(LoginUsecase(service, context))


async def logout(service: UserService, context: CallContext) -> str:
    return await run_usecase_require_auth(LogoutUsecase(service, context))