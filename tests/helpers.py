"""Fakes shared by goalpilot tests."""

from typing import Any, Callable, Dict, List, Optional, Union

from goalpilot.domain.models.action import ActionDecision
from goalpilot.domain.models.goal import GoalPlan, GoalSpec
from goalpilot.domain.models.thought import ThoughtResult, ThoughtStep
from goalpilot.domain.reasoning.reasoning_engine import ReasoningEngine
from goalpilot.domain.streaming.event_bus import EventBus
from goalpilot.domain.streaming.events import BaseEvent

Decision = Union[ActionDecision, BaseException, Callable[[], Any]]


class ScriptedReasoningEngine(ReasoningEngine):
    """Reasoning engine returning a fixed plan and per-goal decisions

    ``decisions`` maps a goal description to the decision for that goal. A
    value may also be an exception to raise or an async callable to await.
    Goals without an entry get an ``echo`` of their description.
    """

    def __init__(self, goals: List[Dict[str, Any]], decisions: Optional[Dict[str, Decision]] = None):
        self.goals = goals
        self.decisions = decisions or {}
        self.queries: List[str] = []
        self.decompose_calls = 0

    async def decompose(self, objective: str, world_state: Optional[str] = None) -> GoalPlan:
        self.decompose_calls += 1
        return GoalPlan(objective=objective, goals=[GoalSpec(**goal) for goal in self.goals])

    async def think(self, query: str, world_state: Optional[str] = None) -> ThoughtResult:
        self.queries.append(query)
        description = _goal_description(query)
        decision = self.decisions.get(description)

        if decision is None:
            decision = ActionDecision(action_type="echo", payload={"text": description})
        elif isinstance(decision, BaseException):
            raise decision
        elif callable(decision):
            decision = await decision()

        return ThoughtResult(query=query, steps=[ThoughtStep(content=f"handling {description}")], decision=decision)


def _goal_description(query: str) -> str:
    for line in query.splitlines():
        if line.startswith("Current goal: "):
            return line[len("Current goal: "):]
    return query


class EventRecorder:
    """Collects every event published on a bus"""

    def __init__(self, event_bus: EventBus):
        self.events: List[BaseEvent] = []
        event_bus.subscribe_all(self.events.append)

    @property
    def types(self) -> List[str]:
        return [event.type.value for event in self.events]

    def of_type(self, event_type: str) -> List[BaseEvent]:
        return [event for event in self.events if event.type.value == event_type]
