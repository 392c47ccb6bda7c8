"""Pytest configuration for goalpilot tests."""

import asyncio
from typing import Any, Dict

import pytest

from goalpilot.domain.action.action_registry import ActionRegistry
from goalpilot.domain.models.action import ExecutionContext
from goalpilot.domain.streaming.event_bus import EventBus

from helpers import EventRecorder


@pytest.fixture
def registry() -> ActionRegistry:
    registry = ActionRegistry()

    async def echo(payload: Dict[str, Any], context: ExecutionContext) -> str:
        return f"echo: {payload['text']}"

    def explode(payload: Dict[str, Any], context: ExecutionContext):
        raise RuntimeError(payload.get("message", "boom"))

    async def sleep(payload: Dict[str, Any], context: ExecutionContext):
        await asyncio.sleep(payload["seconds"])
        return "slept"

    registry.register(
        "echo",
        echo,
        {"description": "Repeat the text back", "example": '{"text": "hello"}'},
        {"text": {"type": "string", "required": True}},
    )
    registry.register(
        "explode",
        explode,
        {"description": "Always fails"},
        {"message": {"type": "string"}},
    )
    registry.register(
        "sleep",
        sleep,
        {"description": "Wait for a number of seconds"},
        {"seconds": {"type": "number", "required": True, "minimum": 0}},
    )
    return registry


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(event_bus: EventBus) -> EventRecorder:
    return EventRecorder(event_bus)
