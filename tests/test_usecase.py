import json

import pytest

from mediascribe.runtime import Principal
from mediascribe.usecase import (
    AuthenticationRequirement,
    UseCase,
    UseCaseRequireAuth,
    run_usecase,
    run_usecase_require_auth,
)


class _Echo(UseCase):
    def call(self):
        return "done"


class _Recorder(UseCaseRequireAuth):
    def __init__(self, principal):
        self.principal = principal
        self.seen = None

    def call(self, authentication_requirement=AuthenticationRequirement.OPTIONAL):
        self.seen = authentication_requirement
        if (
            authentication_requirement is AuthenticationRequirement.REQUIRED
            and self.is_anonymous(self.principal)
        ):
            return self.handle_anonymous()
        return "allowed"


@pytest.mark.asyncio
async def test_run_usecase_returns_call_result():
    assert await run_usecase(_Echo()) == "done"


@pytest.mark.asyncio
async def test_run_usecase_require_auth_passes_required():
    recorder = _Recorder(Principal(b"\x01\x02"))
    assert await run_usecase_require_auth(recorder) == "allowed"
    assert recorder.seen is AuthenticationRequirement.REQUIRED


@pytest.mark.asyncio
async def test_anonymous_caller_is_rejected():
    result = await run_usecase_require_auth(_Recorder(Principal.anonymous()))
    assert json.loads(result) == {"message": "Anonymous users cannot access this service."}


def test_optional_requirement_lets_anonymous_through():
    assert _Recorder(Principal.anonymous()).call() == "allowed"


def test_is_anonymous():
    recorder = _Recorder(Principal.anonymous())
    assert recorder.is_anonymous(Principal.anonymous()) is True
    assert recorder.is_anonymous(Principal(b"\x09")) is False


def test_abstract_usecase_cannot_be_built():
    with pytest.raises(TypeError):
        UseCase()