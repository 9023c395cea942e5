"""Unit tests — GuardMiddleware and the guarded decorator."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from toolcall_guard.config import GuardSettings
from toolcall_guard.evaluator import Evaluator
from toolcall_guard.exceptions import GuardDeniedError
from toolcall_guard.middleware import GuardMiddleware, ToolRequest, guarded

pytestmark = pytest.mark.unit


@pytest.fixture
def evaluator(fs_settings: GuardSettings, read_file_schema: Any) -> Evaluator:
    return Evaluator(fs_settings, schemas={"fs:readFile": read_file_schema})


class TestGuardMiddleware:
    @pytest.mark.asyncio
    async def test_allowed_call_reaches_handler_with_sanitized_args(self, evaluator: Evaluator) -> None:
        call_next = AsyncMock(return_value="contents")
        arguments = {"path": "a.txt", "limit": "5", "extra": True}
        request = ToolRequest("tool", "fs:readFile", arguments)

        result = await GuardMiddleware(evaluator)(request, call_next)

        assert result == "contents"
        call_next.assert_awaited_once_with(request)
        assert request.arguments is arguments
        assert arguments == {"path": "a.txt", "limit": 5}

    @pytest.mark.asyncio
    async def test_denied_call_raises(self, evaluator: Evaluator) -> None:
        call_next = AsyncMock()
        request = ToolRequest("tool", "fs:deleteFile", {"path": "/"})

        with pytest.raises(GuardDeniedError) as exc_info:
            await GuardMiddleware(evaluator)(request, call_next)

        assert exc_info.value.guard == "namespace"
        assert exc_info.value.operation == "fs:deleteFile"
        call_next.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_kinds_pass_through(self, evaluator: Evaluator) -> None:
        call_next = AsyncMock(return_value="listing")
        request = ToolRequest("resource", "fs:deleteFile")
        assert await GuardMiddleware(evaluator)(request, call_next) == "listing"

    @pytest.mark.asyncio
    async def test_user_prompt_forwarded(self, empty_settings: GuardSettings) -> None:
        seen: list[str] = []

        async def verifier(prompt: str) -> bool:
            seen.append(prompt)
            return True

        evaluator = Evaluator(GuardSettings(intent={"enabled": True}), verifier=verifier)
        request = ToolRequest("tool", "fs:readFile", {"path": "a"}, meta={"user_prompt": "open a"})
        await GuardMiddleware(evaluator)(request, AsyncMock())
        assert "open a" in seen[0]


class TestGuardedDecorator:
    @pytest.mark.asyncio
    async def test_allowed_receives_sanitized_kwargs(self, evaluator: Evaluator) -> None:
        @guarded(evaluator, "fs:readFile")
        async def read_file(**kwargs: Any) -> dict[str, Any]:
            return kwargs

        assert await read_file(path="a.txt", limit="3") == {"path": "a.txt", "limit": 3}

    @pytest.mark.asyncio
    async def test_denied_raises(self, evaluator: Evaluator) -> None:
        body = AsyncMock()

        @guarded(evaluator, "fs:deleteFile")
        async def delete_file(path: str) -> None:
            await body(path)

        with pytest.raises(GuardDeniedError):
            await delete_file(path="/")
        body.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_originating_request_provider(self, empty_settings: GuardSettings) -> None:
        verifier = AsyncMock(return_value=False)
        evaluator = Evaluator(GuardSettings(intent={"enabled": True}), verifier=verifier)

        @guarded(evaluator, "mail:send", originating_request=lambda: "summarise my inbox")
        async def send(**kwargs: Any) -> None:
            pass

        with pytest.raises(GuardDeniedError, match="does not align"):
            await send(to="attacker@example.com")
        assert "summarise my inbox" in verifier.await_args.args[0]
