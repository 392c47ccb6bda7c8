"""Tests for goalpilot/domain/action/action_registry.py."""

import asyncio

import pytest

from goalpilot.domain.action.action_registry import ActionRegistry
from goalpilot.domain.errors import (
    ActionExecutionError,
    DuplicateActionType,
    SchemaValidationError,
    UnknownActionType,
)
from goalpilot.domain.models.action import ExecutionContext


def _context() -> ExecutionContext:
    return ExecutionContext(objective="ship it", goal_id="g1")


class TestRegister:
    def test_register_and_get(self, registry: ActionRegistry) -> None:
        definition = registry.get("echo")
        assert definition.metadata.description == "Repeat the text back"
        assert definition.schema.required_fields == ["text"]
        assert "echo" in registry
        assert len(registry) == 3

    def test_duplicate_registration_keeps_original(self) -> None:
        registry = ActionRegistry()
        calls = []

        def original(payload, context):
            calls.append("original")
            return "built"

        def replacement(payload, context):
            calls.append("replacement")

        registry.register("BUILD", original, {"description": "Build"}, {})

        with pytest.raises(DuplicateActionType) as exc_info:
            registry.register("BUILD", replacement, {"description": "Other"}, {})

        assert exc_info.value.action_type == "BUILD"
        assert registry.get("BUILD").handler is original
        assert asyncio.run(registry.invoke("BUILD", {}, _context())) == "built"
        assert calls == ["original"]

    def test_handler_must_be_callable(self) -> None:
        with pytest.raises(TypeError):
            ActionRegistry().register("BAD", "not callable", {"description": "x"}, {})

    def test_list_actions_in_registration_order(self, registry: ActionRegistry) -> None:
        assert [d.action_type for d in registry.list_actions()] == ["echo", "explode", "sleep"]

    def test_describe_for_prompting(self, registry: ActionRegistry) -> None:
        described = registry.describe()[0]
        assert described == {
            "type": "echo",
            "description": "Repeat the text back",
            "example": '{"text": "hello"}',
            "required": ["text"],
        }


class TestInvoke:
    @pytest.mark.asyncio
    async def test_unknown_action_calls_no_handler(self) -> None:
        registry = ActionRegistry()
        called = []
        registry.register("KNOWN", lambda payload, context: called.append(payload), {"description": "x"}, {})

        with pytest.raises(UnknownActionType) as exc_info:
            await registry.invoke("UNKNOWN", {}, _context())

        assert exc_info.value.action_type == "UNKNOWN"
        assert called == []

    @pytest.mark.asyncio
    async def test_async_handler_gets_validated_payload(self, registry: ActionRegistry) -> None:
        assert await registry.invoke("echo", {"text": "hi"}, _context()) == "echo: hi"

    @pytest.mark.asyncio
    async def test_sync_handler_result_returned(self) -> None:
        registry = ActionRegistry()
        registry.register(
            "ADD",
            lambda payload, context: payload["a"] + payload["b"],
            {"description": "Add numbers"},
            {"a": {"type": "integer", "required": True}, "b": {"type": "integer", "default": 10}},
        )
        assert await registry.invoke("ADD", {"a": 1}, _context()) == 11

    @pytest.mark.asyncio
    async def test_missing_required_field_never_reaches_handler(self) -> None:
        registry = ActionRegistry()
        called = []
        registry.register(
            "WRITE",
            lambda payload, context: called.append(payload),
            {"description": "Write a file"},
            {"path": {"type": "string", "required": True}, "content": {"type": "string"}},
        )

        with pytest.raises(SchemaValidationError) as exc_info:
            await registry.invoke("WRITE", {"content": "x"}, _context())

        assert exc_info.value.action_type == "WRITE"
        assert exc_info.value.fields == ["path"]
        assert called == []

    @pytest.mark.asyncio
    async def test_handler_error_wrapped(self, registry: ActionRegistry) -> None:
        with pytest.raises(ActionExecutionError) as exc_info:
            await registry.invoke("explode", {"message": "kaboom"}, _context())

        err = exc_info.value
        assert err.action_type == "explode"
        assert isinstance(err.original_error, RuntimeError)
        assert err.__cause__ is err.original_error
        assert "kaboom" in str(err)

    @pytest.mark.asyncio
    async def test_context_passed_to_handler(self) -> None:
        registry = ActionRegistry()
        seen = []
        registry.register("LOOK", lambda payload, context: seen.append(context), {"description": "x"}, {})

        await registry.invoke("LOOK", {}, _context())

        assert seen[0].goal_id == "g1"
        assert seen[0].objective == "ship it"

    @pytest.mark.asyncio
    async def test_cancellation_not_wrapped(self, registry: ActionRegistry) -> None:
        task = asyncio.ensure_future(registry.invoke("sleep", {"seconds": 10}, _context()))
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
