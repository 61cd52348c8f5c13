"""Tests for devpilot.engine.actions — the action handler registry."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from devpilot.engine.actions import ActionExecutor, suggest
from devpilot.schemas.decisions import ActResult, ActStatus
from devpilot.schemas.tasks import Task


def _make_task() -> Task:
    return Task(type="build_failed", category="build", description="npm install failed")


class TestActionExecutor:
    @pytest.mark.asyncio
    async def test_unknown_action_echoes_completed(self):
        result = await ActionExecutor().execute("retry_with_clean_cache", "npm ci", _make_task())
        assert result.status == ActStatus.COMPLETED
        assert result.action == "retry_with_clean_cache"
        assert result.solution == "npm ci"

    @pytest.mark.asyncio
    async def test_ai_suggested_is_builtin(self):
        executor = ActionExecutor()
        assert "ai_suggested" in executor

        result = await executor.execute("ai_suggested", "check the lockfile", _make_task())
        assert result.status == ActStatus.ACTION_SUGGESTED
        assert result.details == {"task_type": "build_failed"}

    @pytest.mark.asyncio
    async def test_registered_handler_called(self):
        handler = AsyncMock(return_value=ActResult(status="queued", action="rebuild"))
        executor = ActionExecutor({"rebuild": handler})
        task = _make_task()

        result = await executor.execute("rebuild", "clean build", task)

        assert result.status == "queued"
        handler.assert_awaited_once_with("clean build", task)

    @pytest.mark.asyncio
    async def test_register_overrides(self):
        executor = ActionExecutor()
        handler = AsyncMock(return_value=ActResult(status=ActStatus.COMPLETED))
        executor.register("ai_suggested", handler)

        await executor.execute("ai_suggested", None, _make_task())
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_handler_errors_propagate(self):
        handler = AsyncMock(side_effect=ConnectionError("chat webhook down"))
        executor = ActionExecutor({"notify": handler})
        with pytest.raises(ConnectionError):
            await executor.execute("notify", None, _make_task())

    @pytest.mark.asyncio
    async def test_suggest(self):
        result = await suggest("try again", _make_task())
        assert result.action == "ai_suggested"
        assert result.solution == "try again"
