from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from dataclasses import dataclass
import asyncio
import inspect
import threading
import structlog

from goalpilot.domain.action.action_validator import ActionSchema, validate_payload
from goalpilot.domain.errors import (
    ActionExecutionError,
    DuplicateActionType,
    UnknownActionType,
)
from goalpilot.domain.models.action import ActionMetadata, ExecutionContext

logger = structlog.get_logger(__name__)

ActionHandler = Callable[[Dict[str, Any], ExecutionContext], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class ActionDefinition:
    """A registered action: handler, payload schema and prompt metadata"""
    action_type: str
    handler: ActionHandler
    metadata: ActionMetadata
    schema: ActionSchema


class ActionRegistry:
    """Registry of actions the orchestrator may invoke"""

    def __init__(self):
        self._actions: Dict[str, ActionDefinition] = {}
        self._lock = threading.Lock()

    def register(
        self,
        action_type: str,
        handler: ActionHandler,
        metadata: Union[ActionMetadata, Dict[str, Any]],
        schema: Union[ActionSchema, Dict[str, Dict[str, Any]]],
    ) -> ActionDefinition:
        """Register a new action; duplicate type names are rejected"""

        if not callable(handler):
            raise TypeError(f"Handler for {action_type!r} is not callable")
        if isinstance(metadata, dict):
            metadata = ActionMetadata(**metadata)
        if isinstance(schema, dict):
            schema = ActionSchema.from_dict(schema)

        definition = ActionDefinition(
            action_type=action_type,
            handler=handler,
            metadata=metadata,
            schema=schema,
        )

        with self._lock:
            if action_type in self._actions:
                raise DuplicateActionType(action_type)
            self._actions[action_type] = definition

        logger.info("Registered action", action_type=action_type)
        return definition

    def get(self, action_type: str) -> ActionDefinition:
        """Get a registered action definition"""

        definition = self._actions.get(action_type)
        if definition is None:
            raise UnknownActionType(action_type)
        return definition

    def list_actions(self) -> List[ActionDefinition]:
        """Get all registered actions in registration order"""

        return list(self._actions.values())

    def describe(self) -> List[Dict[str, Any]]:
        """Describe registered actions for prompting"""

        return [
            {
                "type": definition.action_type,
                "description": definition.metadata.description,
                "example": definition.metadata.example,
                "required": definition.schema.required_fields,
            }
            for definition in self._actions.values()
        ]

    def validate(self, action_type: str, payload: Any) -> Dict[str, Any]:
        """Validate a payload against the action's schema"""

        definition = self.get(action_type)
        return validate_payload(definition.schema, payload, action_type=action_type)

    async def invoke(
        self,
        action_type: str,
        payload: Any,
        context: ExecutionContext,
    ) -> Any:
        """Validate a payload and run the action's handler"""

        validated = self.validate(action_type, payload)
        definition = self._actions[action_type]

        logger.debug("Invoking action", action_type=action_type, goal_id=context.goal_id)

        try:
            result = definition.handler(validated, context)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ActionExecutionError(action_type, e) from e

        return result

    def __contains__(self, action_type: object) -> bool:
        return action_type in self._actions

    def __len__(self) -> int:
        return len(self._actions)
