from typing import List
import structlog

from goalpilot.domain.models.execution import RunReport
from goalpilot.domain.streaming.event_bus import EventBus
from goalpilot.domain.streaming.events import (
    ActionCompleteEvent,
    ActionErrorEvent,
    ActionStartEvent,
    BaseEvent,
    ExperienceRetrievedEvent,
    ExperienceStoredEvent,
    GoalCompletedEvent,
    GoalCreatedEvent,
    GoalFailedEvent,
    GoalUpdatedEvent,
    KnowledgeRetrievedEvent,
    KnowledgeStoredEvent,
    ThinkErrorEvent,
    ThinkStepEvent,
)
from goalpilot.infrastructure.observability.logging import AgentLogger

logger = structlog.get_logger(__name__)


class ConsoleReporter:
    """Writes orchestrator events to the log as they happen"""

    def __init__(self, agent_logger: AgentLogger):
        self.agent_logger = agent_logger

    def attach(self, event_bus: EventBus):
        return event_bus.subscribe_all(self.handle_event)

    async def handle_event(self, event: BaseEvent):
        """Route an event to the matching log line"""

        if event.type.value.startswith("think:"):
            await self._handle_think(event)
        elif event.type.value.startswith("action:"):
            await self._handle_action(event)
        elif event.type.value.startswith("goal:"):
            await self._handle_goal(event)
        elif event.type.value.startswith("memory:"):
            await self._handle_memory(event)

    async def _handle_think(self, event: BaseEvent):
        if isinstance(event, ThinkStepEvent):
            self.agent_logger.log_thought(
                event.step.kind.value, event.query, content=event.step.content, tags=event.step.tags
            )
        elif isinstance(event, ThinkErrorEvent):
            self.agent_logger.log_thought(event.type.value, event.query, error=event.error)
        else:
            self.agent_logger.log_thought(event.type.value, getattr(event, "query", ""))

    async def _handle_action(self, event: BaseEvent):
        if isinstance(event, ActionStartEvent):
            self.agent_logger.log_action_execution(event.action.action_type, event.action.payload)
        elif isinstance(event, ActionCompleteEvent):
            self.agent_logger.log_action_execution(
                event.action.action_type, event.action.payload, result=event.result
            )
        elif isinstance(event, ActionErrorEvent):
            self.agent_logger.log_action_execution(
                event.action.action_type, event.action.payload, success=False, error=event.error
            )

    async def _handle_goal(self, event: BaseEvent):
        if isinstance(event, GoalCreatedEvent):
            self.agent_logger.log_goal_event(event.type.value, event.id, {"description": event.description})
        elif isinstance(event, GoalUpdatedEvent):
            self.agent_logger.log_goal_event(event.type.value, event.id, {"status": event.status.value})
        elif isinstance(event, GoalCompletedEvent):
            self.agent_logger.log_goal_event(event.type.value, event.id, {"result": event.result})
        elif isinstance(event, GoalFailedEvent):
            self.agent_logger.log_goal_event(event.type.value, event.id, {"error": event.error})

    async def _handle_memory(self, event: BaseEvent):
        if isinstance(event, ExperienceStoredEvent):
            details = event.experience.model_dump(include={"action", "outcome", "importance", "emotions"})
        elif isinstance(event, KnowledgeStoredEvent):
            details = event.document.model_dump(include={"title", "category", "tags"})
        elif isinstance(event, ExperienceRetrievedEvent):
            details = {"count": len(event.experiences)}
        elif isinstance(event, KnowledgeRetrievedEvent):
            details = {"titles": [doc.title for doc in event.documents]}
        else:
            details = {}
        self.agent_logger.log_memory_event(event.type.value, details)


def format_report(report: RunReport) -> List[str]:
    """Render a run report as plain text lines"""

    summary = report.get_summary()
    lines = ["", "Learning Summary:"]

    lines.append("Recent Experiences:")
    for index, exp in enumerate(report.recent_experiences, 1):
        importance = exp.importance if exp.importance is not None else "N/A"
        lines.append(f"  {index}. {exp.action}: {exp.outcome} (importance: {importance})")

    lines.append("Accumulated Knowledge:")
    for index, doc in enumerate(report.relevant_documents, 1):
        lines.append(f"  {index}. {doc.title} [{doc.category}] tags: {', '.join(doc.tags)}")

    if report.pending_diagnostics:
        lines.append("Goals that never became executable:")
        for diag in report.pending_diagnostics:
            lines.append(f"  - {diag.goal.description} (blocked by {len(diag.blocking)} goals)")
            for blocking in diag.blocking:
                lines.append(f"      {blocking.description} ({blocking.status.value})")
            for missing in diag.unresolved:
                lines.append(f"      {missing} (not in plan)")

    for failure in report.failures:
        action = f" [{failure.action_type}]" if failure.action_type else ""
        lines.append(f"Failed goal {failure.goal_id}{action}: {failure.error_type}: {failure.error}")

    lines.append("Final Execution Summary:")
    lines.append(f"  Outcome: {summary['outcome']}")
    lines.append(f"  Completed Goals: {summary['completed']}")
    lines.append(f"  Failed Goals: {summary['failed']}")
    lines.append(f"  Success Rate: {summary['success_rate']}%")
    lines.append(
        f"  Learning Progress: {summary['recent_experiences']} experiences, "
        f"{summary['relevant_documents']} relevant knowledge entries"
    )
    return lines
