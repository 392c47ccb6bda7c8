from abc import ABC, abstractmethod
from typing import Optional
import asyncio
import structlog

from goalpilot.domain.errors import (
    OperationCancelled,
    ReasoningError,
    ReasoningFailure,
    ReasoningTimeout,
)
from goalpilot.domain.models.goal import GoalPlan
from goalpilot.domain.models.thought import ThoughtResult
from goalpilot.domain.orchestration.cancellation import CancellationToken, run_guarded
from goalpilot.domain.streaming.event_bus import EventBus
from goalpilot.domain.streaming.events import (
    BaseEvent,
    ThinkCompleteEvent,
    ThinkErrorEvent,
    ThinkStartEvent,
    ThinkStepEvent,
    ThinkTimeoutEvent,
)

logger = structlog.get_logger(__name__)


class ReasoningEngine(ABC):
    """Produces thought steps and action decisions; backed by a language model"""

    @abstractmethod
    async def think(self, query: str, world_state: Optional[str] = None) -> ThoughtResult:
        """Reason about a query and decide on exactly one action"""
        pass

    @abstractmethod
    async def decompose(self, objective: str, world_state: Optional[str] = None) -> GoalPlan:
        """Break an objective into a dependency graph of goals"""
        pass


class ReasoningRunner:
    """Runs a reasoning engine with a time budget, cancellation and events

    Failures are classified, never retried: a call over budget raises
    ``ReasoningTimeout``; anything else the engine raises becomes
    ``ReasoningError``.
    """

    def __init__(self, engine: ReasoningEngine, event_bus: Optional[EventBus] = None):
        self.engine = engine
        self.event_bus = event_bus or EventBus()

    async def think(
        self,
        query: str,
        world_state: Optional[str] = None,
        timeout: Optional[float] = None,
        token: Optional[CancellationToken] = None,
        run_id: Optional[str] = None,
    ) -> ThoughtResult:
        """Ask the engine for an action decision"""

        result = await self._call(
            self.engine.think(query, world_state), query, timeout, token, run_id, "think"
        )
        if not isinstance(result, ThoughtResult):
            error = ReasoningError(query, f"engine returned {type(result).__name__}, expected ThoughtResult")
            self._publish(ThinkErrorEvent(query=query, error=str(error), run_id=run_id))
            raise error

        for step in result.steps:
            self._publish(ThinkStepEvent(query=query, step=step, run_id=run_id))
        self._publish(ThinkCompleteEvent(query=query, run_id=run_id))
        return result

    async def decompose(
        self,
        objective: str,
        world_state: Optional[str] = None,
        timeout: Optional[float] = None,
        token: Optional[CancellationToken] = None,
        run_id: Optional[str] = None,
    ) -> GoalPlan:
        """Ask the engine to decompose an objective into goals"""

        plan = await self._call(
            self.engine.decompose(objective, world_state), objective, timeout, token, run_id, "decompose"
        )
        if not isinstance(plan, GoalPlan):
            error = ReasoningError(objective, f"engine returned {type(plan).__name__}, expected GoalPlan")
            self._publish(ThinkErrorEvent(query=objective, error=str(error), run_id=run_id))
            raise error

        self._publish(ThinkCompleteEvent(query=objective, run_id=run_id))
        return plan

    async def _call(self, coro, query: str, timeout: Optional[float], token, run_id, operation: str):
        logger.info("Thinking", operation=operation, query=query[:100])
        self._publish(ThinkStartEvent(query=query, run_id=run_id))

        try:
            return await run_guarded(coro, timeout=timeout, token=token, operation=operation)
        except (asyncio.TimeoutError, ReasoningTimeout):
            logger.warning("Reasoning timed out", operation=operation, timeout=timeout)
            self._publish(ThinkTimeoutEvent(query=query, run_id=run_id))
            raise ReasoningTimeout(query, timeout if timeout is not None else 0.0) from None
        except (asyncio.CancelledError, OperationCancelled):
            raise
        except ReasoningFailure as e:
            self._publish(ThinkErrorEvent(query=query, error=str(e), run_id=run_id))
            raise
        except Exception as e:
            logger.error("Reasoning failed", operation=operation, error=str(e))
            self._publish(ThinkErrorEvent(query=query, error=str(e), run_id=run_id))
            raise ReasoningError(query, str(e)) from e

    def _publish(self, event: BaseEvent):
        self.event_bus.publish(event)
