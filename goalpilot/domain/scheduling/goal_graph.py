from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from collections import Counter
import itertools
import threading
import structlog

from goalpilot.domain.errors import (
    CyclicDependency,
    DuplicateGoal,
    InvalidTransition,
    UnknownGoal,
)
from goalpilot.domain.models.goal import Goal, GoalCondition, GoalHorizon, GoalStatus

logger = structlog.get_logger(__name__)

# Called with a snapshot of the goal and its previous status (None on creation)
TransitionListener = Callable[[Goal, Optional[GoalStatus]], None]


class GoalGraph:
    """Goal records, dependency edges and status transitions

    Goals enter the graph ``pending`` and move along
    ``pending -> ready -> active -> completed | failed``. ``blocked`` and
    ``unreachable`` are computed from dependencies on demand and never stored.
    Iteration order is creation order, which is also the scheduling tie-break.
    """

    def __init__(self, on_transition: Optional[TransitionListener] = None):
        self._goals: Dict[str, Goal] = {}
        self._sequence = itertools.count()
        self._lock = threading.RLock()
        self._on_transition = on_transition

    def set_listener(self, listener: Optional[TransitionListener]):
        """Set the callback notified on goal creation and every transition"""
        self._on_transition = listener

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_goal(self, goal: Goal) -> Goal:
        """Insert a goal, rejecting duplicate ids and dependency cycles"""

        with self._lock:
            if goal.id in self._goals:
                raise DuplicateGoal(goal.id)

            dependencies = list(dict.fromkeys(goal.dependencies))
            if goal.id in dependencies:
                raise CyclicDependency(goal.id, [goal.id, goal.id])

            path = self._find_path(dependencies, goal.id)
            if path is not None:
                raise CyclicDependency(goal.id, [goal.id] + path)

            stored = goal.model_copy(update={
                "status": GoalStatus.PENDING,
                "dependencies": dependencies,
                "result": None,
                "failure_reason": None,
                "sequence": next(self._sequence),
            })
            self._goals[stored.id] = stored

            logger.debug("Goal added", goal_id=stored.id, dependencies=dependencies)
            self._notify(stored, None)
            return self._snapshot(stored)

    def add_goals(self, goals: Iterable[Goal]) -> List[Goal]:
        """Insert several goals in order"""
        return [self.add_goal(goal) for goal in goals]

    def _find_path(self, start: List[str], target: str) -> Optional[List[str]]:
        """Find a dependency path from any of ``start`` to ``target``"""

        stack = [(dep, [dep]) for dep in reversed(start)]
        visited = set()

        while stack:
            node, path = stack.pop()
            if node == target:
                return path
            if node in visited:
                continue
            visited.add(node)

            goal = self._goals.get(node)
            if goal is None:
                continue
            for dep in reversed(goal.dependencies):
                stack.append((dep, path + [dep]))

        return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_goal(self, goal_id: str) -> Goal:
        with self._lock:
            return self._snapshot(self._require(goal_id))

    def get_goals(self) -> List[Goal]:
        """Get all goals in creation order"""
        with self._lock:
            return [self._snapshot(goal) for goal in self._goals.values()]

    def get_ready_goals(self) -> List[Goal]:
        """Promote pending goals whose dependencies are all completed

        Returns the goals promoted by this call, in creation order. A goal is
        promoted once; later calls do not return it again.
        """

        with self._lock:
            promoted = []
            for goal in self._goals.values():
                if goal.status == GoalStatus.PENDING and self._dependencies_met(goal):
                    self._set_status(goal, GoalStatus.READY)
                    promoted.append(self._snapshot(goal))
            return promoted

    def get_goals_by_status(self, status: Union[GoalStatus, str]) -> List[Goal]:
        status = GoalStatus(status)
        with self._lock:
            return [self._snapshot(g) for g in self._goals.values() if g.status == status]

    def get_goals_by_horizon(self, horizon: Union[GoalHorizon, str]) -> List[Goal]:
        """Get goals with the given planning horizon"""
        horizon = GoalHorizon(horizon)
        with self._lock:
            return [self._snapshot(g) for g in self._goals.values() if g.horizon == horizon]

    def get_blocking_goals(self, goal_id: str) -> List[Goal]:
        """Get the goal's direct dependencies that are not completed"""

        with self._lock:
            goal = self._require(goal_id)
            return [
                self._snapshot(self._goals[dep])
                for dep in goal.dependencies
                if dep in self._goals and self._goals[dep].status != GoalStatus.COMPLETED
            ]

    def get_unresolved_dependencies(self, goal_id: str) -> List[str]:
        """Get dependency ids that are not present in the graph"""

        with self._lock:
            goal = self._require(goal_id)
            return [dep for dep in goal.dependencies if dep not in self._goals]

    # ------------------------------------------------------------------
    # Derived conditions
    # ------------------------------------------------------------------

    def get_condition(self, goal_id: str) -> GoalCondition:
        """Classify a goal for diagnostics

        A pending goal is ``blocked`` when a direct dependency has failed or is
        missing from the graph, and ``unreachable`` when no direct dependency
        is at fault but a deeper ancestor has failed.
        """

        with self._lock:
            goal = self._require(goal_id)
            if goal.status != GoalStatus.PENDING:
                return GoalCondition(goal.status.value)

            for dep in goal.dependencies:
                dep_goal = self._goals.get(dep)
                if dep_goal is None or dep_goal.status == GoalStatus.FAILED:
                    return GoalCondition.BLOCKED

            if self._has_failed_ancestor(goal):
                return GoalCondition.UNREACHABLE
            return GoalCondition.PENDING

    def get_blocked_goals(self) -> List[Goal]:
        with self._lock:
            return [
                self._snapshot(g) for g in self._goals.values()
                if self.get_condition(g.id) == GoalCondition.BLOCKED
            ]

    def get_unreachable_goals(self) -> List[Goal]:
        with self._lock:
            return [
                self._snapshot(g) for g in self._goals.values()
                if self.get_condition(g.id) == GoalCondition.UNREACHABLE
            ]

    def has_failed_ancestor(self, goal_id: str) -> bool:
        """Check whether any transitive dependency of the goal has failed"""
        with self._lock:
            return self._has_failed_ancestor(self._require(goal_id))

    def _has_failed_ancestor(self, goal: Goal) -> bool:
        stack = list(goal.dependencies)
        visited = set()

        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)

            dep_goal = self._goals.get(node)
            if dep_goal is None:
                continue
            if dep_goal.status == GoalStatus.FAILED:
                return True
            stack.extend(dep_goal.dependencies)

        return False

    def summary(self) -> Dict[str, int]:
        """Count goals per condition"""
        with self._lock:
            counts = Counter(self.get_condition(goal_id).value for goal_id in self._goals)
            return {condition.value: counts.get(condition.value, 0) for condition in GoalCondition}

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_active(self, goal_id: str) -> Goal:
        """Move a ready goal to active"""
        return self._transition(goal_id, GoalStatus.READY, GoalStatus.ACTIVE)

    def mark_completed(self, goal_id: str, result: Any = None) -> Goal:
        """Move an active goal to completed, recording its result"""
        return self._transition(goal_id, GoalStatus.ACTIVE, GoalStatus.COMPLETED, result=result)

    def mark_failed(self, goal_id: str, reason: str) -> Goal:
        """Move an active goal to failed, recording why"""
        return self._transition(goal_id, GoalStatus.ACTIVE, GoalStatus.FAILED, failure_reason=reason)

    def _transition(self, goal_id: str, expected: GoalStatus, target: GoalStatus, **updates) -> Goal:
        with self._lock:
            goal = self._require(goal_id)
            if goal.status != expected:
                raise InvalidTransition(goal_id, goal.status.value, target.value)

            for key, value in updates.items():
                setattr(goal, key, value)
            self._set_status(goal, target)
            return self._snapshot(goal)

    def _set_status(self, goal: Goal, status: GoalStatus):
        previous = goal.status
        goal.status = status
        goal.touch()

        logger.debug("Goal status updated", goal_id=goal.id, previous=previous.value, status=status.value)
        self._notify(goal, previous)

    def _notify(self, goal: Goal, previous: Optional[GoalStatus]):
        if self._on_transition is None:
            return
        try:
            self._on_transition(self._snapshot(goal), previous)
        except Exception as e:
            logger.error("Error in goal transition listener", goal_id=goal.id, error=str(e))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, goal_id: str) -> Goal:
        goal = self._goals.get(goal_id)
        if goal is None:
            raise UnknownGoal(goal_id)
        return goal

    def _dependencies_met(self, goal: Goal) -> bool:
        return all(
            dep in self._goals and self._goals[dep].status == GoalStatus.COMPLETED
            for dep in goal.dependencies
        )

    @staticmethod
    def _snapshot(goal: Goal) -> Goal:
        return goal.model_copy(update={
            "dependencies": list(goal.dependencies),
            "metadata": dict(goal.metadata),
        })

    def __contains__(self, goal_id: object) -> bool:
        return goal_id in self._goals

    def __len__(self) -> int:
        return len(self._goals)
