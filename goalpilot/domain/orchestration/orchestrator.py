from typing import Any, List, Optional
from datetime import datetime
import asyncio
import time
import uuid
import structlog

from goalpilot.domain.action.action_registry import ActionRegistry
from goalpilot.domain.context.memory.memory_gateway import MemoryGateway
from goalpilot.domain.errors import (
    ActionExecutionError,
    ActionRegistryError,
    GoalExecutionFailed,
    OperationCancelled,
    PlanningFailed,
    ReasoningFailure,
    SchedulingError,
)
from goalpilot.domain.models.action import ActionDecision, ExecutionContext
from goalpilot.domain.models.execution import (
    ExecutionStats,
    GoalFailure,
    PendingGoalDiagnostic,
    RunOutcome,
    RunReport,
)
from goalpilot.domain.models.goal import Goal, GoalHorizon, GoalStatus
from goalpilot.domain.models.memory import Experience, KnowledgeDocument
from goalpilot.domain.orchestration.cancellation import CancellationToken, run_guarded
from goalpilot.domain.orchestration.policies import ContinuePolicy, always_continue
from goalpilot.domain.reasoning.reasoning_engine import ReasoningEngine, ReasoningRunner
from goalpilot.domain.scheduling.goal_graph import GoalGraph
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
)

logger = structlog.get_logger(__name__)

CANCELLED_REASON = "cancelled"


class GoalOrchestrator:
    """Drives an objective from decomposition to a run report

    Goals execute one at a time: think, validate and invoke the chosen action,
    then record the outcome on the goal graph. A failed goal is never retried
    within a run; the continue policy decides whether the run goes on.
    """

    def __init__(
        self,
        reasoning_engine: ReasoningEngine,
        action_registry: ActionRegistry,
        memory: Optional[MemoryGateway] = None,
        event_bus: Optional[EventBus] = None,
        continue_policy: Optional[ContinuePolicy] = None,
        world_state: Optional[str] = None,
        think_timeout: Optional[float] = 60.0,
        action_timeout: Optional[float] = 120.0,
        planning_timeout: Optional[float] = 120.0,
        memory_timeout: float = 10.0,
        scheduling_horizon: GoalHorizon = GoalHorizon.SHORT,
        recent_episodes: int = 5,
        similar_documents: int = 3,
    ):
        self.event_bus = event_bus or EventBus()
        self.reasoning = ReasoningRunner(reasoning_engine, self.event_bus)
        self.action_registry = action_registry
        self.memory = memory
        self.continue_policy = continue_policy or always_continue
        self.world_state = world_state
        self.think_timeout = think_timeout
        self.action_timeout = action_timeout
        self.planning_timeout = planning_timeout
        self.memory_timeout = memory_timeout
        self.scheduling_horizon = GoalHorizon(scheduling_horizon)
        self.recent_episodes = recent_episodes
        self.similar_documents = similar_documents

        self.graph: Optional[GoalGraph] = None
        self.stats = ExecutionStats()
        self._run_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def plan(self, objective: str, token: Optional[CancellationToken] = None) -> GoalGraph:
        """Decompose an objective and commit the resulting goal graph

        The graph is built off to the side and only replaces the current one
        once every goal was accepted.
        """

        try:
            plan = await self.reasoning.decompose(
                objective,
                self.world_state,
                timeout=self.planning_timeout,
                token=token,
                run_id=self._run_id,
            )
        except ReasoningFailure as e:
            raise PlanningFailed(objective, str(e)) from e

        if not plan.goals:
            raise PlanningFailed(objective, "decomposition produced no goals")

        staged = GoalGraph()
        try:
            staged.add_goals(spec.to_goal() for spec in plan.goals)
        except SchedulingError as e:
            raise PlanningFailed(objective, str(e)) from e

        unresolved = sorted({
            dep for goal in staged.get_goals() for dep in staged.get_unresolved_dependencies(goal.id)
        })
        if unresolved:
            raise PlanningFailed(objective, f"unknown dependencies: {', '.join(unresolved)}")

        graph = GoalGraph(on_transition=self._on_goal_transition)
        graph.add_goals(spec.to_goal() for spec in plan.goals)
        self.graph = graph

        logger.info("Goal graph committed", goals=len(graph))
        return graph

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, objective: str, token: Optional[CancellationToken] = None) -> RunReport:
        """Plan and execute an objective, returning a report of the run"""

        token = token or CancellationToken()
        self._run_id = uuid.uuid4().hex[:12]
        self.stats = ExecutionStats()
        report = RunReport(objective=objective, run_id=self._run_id)

        with structlog.contextvars.bound_contextvars(run_id=self._run_id, objective=objective[:100]):
            logger.info("Planning strategy for objective", objective=objective[:100])

            try:
                await self.plan(objective, token)
            except OperationCancelled:
                report.outcome = RunOutcome.CANCELLED
                report.finished_at = datetime.utcnow()
                return report

            try:
                report.outcome = await self._execute_goals(self.graph, objective, token, report)
            except OperationCancelled as e:
                logger.info("Run cancelled", operation=e.operation)
                report.outcome = RunOutcome.CANCELLED
            except asyncio.CancelledError:
                self._abandon_active_goals(self.graph)
                raise

            report.stats = self.stats.model_copy()
            report.goals = self.graph.get_goals()

            if report.outcome != RunOutcome.CANCELLED:
                await self._collect_learning(objective, report)

            report.finished_at = datetime.utcnow()
            logger.info("Execution summary", **report.get_summary())
            return report

    async def _execute_goals(
        self,
        graph: GoalGraph,
        objective: str,
        token: CancellationToken,
        report: RunReport,
    ) -> RunOutcome:
        while True:
            token.raise_if_cancelled("goal execution")

            graph.get_ready_goals()
            ready = graph.get_goals_by_status(GoalStatus.READY)
            horizon_goals = graph.get_goals_by_horizon(self.scheduling_horizon)
            active = [g for g in horizon_goals if g.status == GoalStatus.ACTIVE]
            pending = [g for g in horizon_goals if g.status == GoalStatus.PENDING]

            logger.info(
                "Current progress",
                ready=len(ready),
                active=len(active),
                pending=len(pending),
                completed=self.stats.completed,
                failed=self.stats.failed,
            )

            if not ready and not active and not pending:
                deferred = graph.get_goals_by_status(GoalStatus.PENDING)
                if deferred:
                    report.pending_diagnostics = [self._diagnose(graph, goal) for goal in deferred]
                    logger.info(
                        "Goals outside the scheduling horizon left pending",
                        horizon=self.scheduling_horizon.value,
                        pending=[g.id for g in deferred],
                    )
                else:
                    logger.info("All goals resolved")
                return RunOutcome.COMPLETED

            if not ready and not active:
                report.pending_diagnostics = [self._diagnose(graph, goal) for goal in pending]
                logger.warning(
                    "No ready or active goals, but some goals are pending",
                    pending=[d.goal.id for d in report.pending_diagnostics],
                )
                return RunOutcome.DEADLOCKED

            if not ready:
                logger.warning("Active goals held outside this loop", active=[g.id for g in active])
                return RunOutcome.STOPPED

            goal = ready[0]
            try:
                await self.execute_goal(goal, objective, token)
                self.stats.record_success()
            except GoalExecutionFailed as failure:
                self.stats.record_failure()
                report.failures.append(GoalFailure(**failure.to_dict()))
                logger.error("Goal execution failed", **failure.to_dict())

                if isinstance(failure.original_error, OperationCancelled):
                    return RunOutcome.CANCELLED
                if not await self._should_continue(failure, token):
                    logger.info("Stopping goal execution")
                    return RunOutcome.STOPPED

    async def execute_goal(
        self,
        goal: Goal,
        objective: str,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        """Execute a single ready goal

        Raises ``GoalExecutionFailed`` wrapping the reasoning, validation or
        action error after marking the goal failed.
        """

        graph = self._require_graph()
        graph.mark_active(goal.id)
        action_type: Optional[str] = None

        try:
            thought = await self.reasoning.think(
                self._goal_query(graph, goal, objective),
                self.world_state,
                timeout=self.think_timeout,
                token=token,
                run_id=self._run_id,
            )
            decision = thought.decision
            action_type = decision.action_type
            result = await self._invoke_action(decision, goal, objective, token)
        except asyncio.CancelledError:
            self._abandon_active_goals(graph)
            raise
        except (ReasoningFailure, ActionRegistryError, OperationCancelled) as e:
            failure = GoalExecutionFailed(goal.id, e, action_type=action_type)
            graph.mark_failed(goal.id, failure.reason)
            if not isinstance(e, OperationCancelled):
                await self._record_experience(goal, action_type, f"Failed: {e}", importance=0.8)
            raise failure from e

        graph.mark_completed(goal.id, result)
        await self._record_experience(goal, action_type, f"Completed: {_preview(result)}", importance=0.5)
        return result

    async def _invoke_action(
        self,
        decision: ActionDecision,
        goal: Goal,
        objective: str,
        token: Optional[CancellationToken],
    ) -> Any:
        context = ExecutionContext(
            objective=objective,
            goal_id=goal.id,
            goal_description=goal.description,
            world_state=self.world_state,
            metadata={"run_id": self._run_id},
        )

        self._publish(ActionStartEvent(action=decision, run_id=self._run_id))
        started = time.monotonic()

        try:
            result = await run_guarded(
                self.action_registry.invoke(decision.action_type, decision.payload, context),
                timeout=self.action_timeout,
                token=token,
                operation=f"action {decision.action_type}",
            )
        except asyncio.TimeoutError as e:
            error = ActionExecutionError(decision.action_type, e)
            self._publish(ActionErrorEvent(action=decision, error=str(error), run_id=self._run_id))
            raise error from e
        except ActionRegistryError as e:
            self._publish(ActionErrorEvent(action=decision, error=str(e), run_id=self._run_id))
            raise

        logger.info(
            "Action complete",
            action_type=decision.action_type,
            goal_id=goal.id,
            duration_ms=round((time.monotonic() - started) * 1000, 1),
        )
        self._publish(ActionCompleteEvent(action=decision, result=result, run_id=self._run_id))
        return result

    async def _should_continue(self, failure: GoalExecutionFailed, token: CancellationToken) -> bool:
        try:
            decision = await run_guarded(
                self.continue_policy(failure, self.stats.model_copy()),
                token=token,
                operation="continue policy",
            )
        except OperationCancelled:
            raise
        except Exception as e:
            logger.error("Continue policy failed, stopping", error=str(e))
            return False
        return bool(decision)

    def _abandon_active_goals(self, graph: Optional[GoalGraph]):
        """Mark goals left active by an interrupted run as failed"""

        if graph is None:
            return
        for goal in graph.get_goals_by_status(GoalStatus.ACTIVE):
            graph.mark_failed(goal.id, CANCELLED_REASON)
            self.stats.record_failure()
            logger.warning("Goal abandoned", goal_id=goal.id, reason=CANCELLED_REASON)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _diagnose(self, graph: GoalGraph, goal: Goal) -> PendingGoalDiagnostic:
        return PendingGoalDiagnostic(
            goal=goal,
            blocking=graph.get_blocking_goals(goal.id),
            unresolved=graph.get_unresolved_dependencies(goal.id),
            unreachable=graph.has_failed_ancestor(goal.id),
        )

    async def _collect_learning(self, objective: str, report: RunReport):
        """Query memory for the learning summary; failures only degrade the report"""

        if self.memory is None:
            return

        try:
            report.recent_experiences = await asyncio.wait_for(
                self.memory.get_recent_episodes(self.recent_episodes), timeout=self.memory_timeout
            )
            self._publish(ExperienceRetrievedEvent(
                experiences=report.recent_experiences, run_id=self._run_id
            ))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Failed to retrieve recent experiences", error=str(e))

        try:
            report.relevant_documents = await asyncio.wait_for(
                self.memory.find_similar_documents(objective, self.similar_documents),
                timeout=self.memory_timeout,
            )
            self._publish(KnowledgeRetrievedEvent(
                documents=report.relevant_documents, run_id=self._run_id
            ))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Failed to retrieve knowledge documents", error=str(e))

    async def _record_experience(
        self,
        goal: Goal,
        action_type: Optional[str],
        outcome: str,
        importance: float,
    ):
        if self.memory is None:
            return

        experience = Experience(
            action=action_type or "none",
            outcome=outcome,
            importance=importance,
            context={"goal_id": goal.id, "goal": goal.description, "run_id": self._run_id},
        )
        try:
            await asyncio.wait_for(self.memory.store_experience(experience), timeout=self.memory_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Failed to store experience", goal_id=goal.id, error=str(e))
            return

        self._publish(ExperienceStoredEvent(experience=experience, run_id=self._run_id))

    async def store_knowledge(self, document: KnowledgeDocument) -> bool:
        """Add a knowledge document to memory; returns False if the store failed"""

        if self.memory is None:
            return False

        try:
            await asyncio.wait_for(self.memory.store_document(document), timeout=self.memory_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Failed to store knowledge document", title=document.title, error=str(e))
            return False

        self._publish(KnowledgeStoredEvent(document=document, run_id=self._run_id))
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _goal_query(self, graph: GoalGraph, goal: Goal, objective: str) -> str:
        lines = [f"Objective: {objective}", f"Current goal: {goal.description}"]
        for dep in goal.dependencies:
            completed = graph.get_goal(dep)
            lines.append(f"Completed prerequisite: {completed.description} -> {_preview(completed.result)}")
        return "\n".join(lines)

    def _on_goal_transition(self, goal: Goal, previous: Optional[GoalStatus]):
        if previous is None:
            self._publish(GoalCreatedEvent(id=goal.id, description=goal.description, run_id=self._run_id))
            return

        self._publish(GoalUpdatedEvent(id=goal.id, status=goal.status, run_id=self._run_id))
        if goal.status == GoalStatus.COMPLETED:
            self._publish(GoalCompletedEvent(id=goal.id, result=goal.result, run_id=self._run_id))
        elif goal.status == GoalStatus.FAILED:
            self._publish(GoalFailedEvent(id=goal.id, error=goal.failure_reason or "", run_id=self._run_id))

    def _publish(self, event: BaseEvent):
        self.event_bus.publish(event)

    def _require_graph(self) -> GoalGraph:
        if self.graph is None:
            raise RuntimeError("No goal graph; call plan() first")
        return self.graph

    def get_pending_diagnostics(self) -> List[PendingGoalDiagnostic]:
        """Describe every pending goal of the current graph and what blocks it"""
        graph = self._require_graph()
        return [self._diagnose(graph, goal) for goal in graph.get_goals_by_status(GoalStatus.PENDING)]


def _preview(value: Any, limit: int = 200) -> str:
    text = str(value)
    return text if len(text) <= limit else text[:limit] + "..."
