"""Exception hierarchy for goal orchestration"""

from typing import Any, Dict, List, Optional


class GoalPilotError(Exception):
    """Base exception for all orchestration errors"""

    pass


# ---------------------------------------------------------------------------
# Action registry (caller mistakes, never retried)
# ---------------------------------------------------------------------------


class ActionRegistryError(GoalPilotError):
    """Base exception for action registration and validation errors"""

    pass


class DuplicateActionType(ActionRegistryError):
    """An action type name is already registered"""

    def __init__(self, action_type: str):
        self.action_type = action_type
        super().__init__(f"Action type already registered: {action_type!r}")


class UnknownActionType(ActionRegistryError):
    """No action is registered under the requested type name"""

    def __init__(self, action_type: str):
        self.action_type = action_type
        super().__init__(f"Unknown action type: {action_type!r}")


class SchemaViolation:
    """A single violated constraint at a field path"""

    __slots__ = ("path", "message")

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SchemaViolation):
            return NotImplemented
        return (self.path, self.message) == (other.path, other.message)

    def __repr__(self) -> str:
        return f"SchemaViolation(path={self.path!r}, message={self.message!r})"


class SchemaValidationError(ActionRegistryError):
    """A payload does not conform to the declared action schema"""

    def __init__(self, action_type: Optional[str], violations: List[SchemaViolation]):
        self.action_type = action_type
        self.violations = list(violations)
        details = "; ".join(f"{v.path}: {v.message}" for v in self.violations)
        prefix = f"Invalid payload for {action_type!r}" if action_type else "Invalid payload"
        super().__init__(f"{prefix}: {details}")

    @property
    def fields(self) -> List[str]:
        """Field paths with at least one violation"""
        return [v.path for v in self.violations]


class ActionExecutionError(ActionRegistryError):
    """A registered handler failed while executing"""

    def __init__(self, action_type: str, original_error: BaseException):
        self.action_type = action_type
        self.original_error = original_error
        super().__init__(f"Action {action_type!r} failed: {original_error}")


# ---------------------------------------------------------------------------
# Scheduling (construction or logic defects, fatal to the operation)
# ---------------------------------------------------------------------------


class SchedulingError(GoalPilotError):
    """Base exception for goal graph errors"""

    pass


class CyclicDependency(SchedulingError):
    """Adding a goal would create a dependency cycle"""

    def __init__(self, goal_id: str, cycle: List[str]):
        self.goal_id = goal_id
        self.cycle = list(cycle)
        super().__init__(f"Goal {goal_id!r} creates a dependency cycle: {' -> '.join(self.cycle)}")


class DuplicateGoal(SchedulingError):
    """A goal id is already present in the graph"""

    def __init__(self, goal_id: str):
        self.goal_id = goal_id
        super().__init__(f"Goal already exists: {goal_id!r}")


class UnknownGoal(SchedulingError):
    """A goal id is not present in the graph"""

    def __init__(self, goal_id: str):
        self.goal_id = goal_id
        super().__init__(f"Unknown goal: {goal_id!r}")


class InvalidTransition(SchedulingError):
    """A status transition is not allowed from the goal's current status"""

    def __init__(self, goal_id: str, current: str, target: str):
        self.goal_id = goal_id
        self.current = current
        self.target = target
        super().__init__(f"Goal {goal_id!r} cannot move from {current!r} to {target!r}")


# ---------------------------------------------------------------------------
# Reasoning and runtime failures (reported per goal)
# ---------------------------------------------------------------------------


class ReasoningFailure(GoalPilotError):
    """Base exception for reasoning engine failures"""

    def __init__(self, query: str, message: str):
        self.query = query
        super().__init__(message)


class ReasoningTimeout(ReasoningFailure):
    """The reasoning engine did not answer within its time budget"""

    def __init__(self, query: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(query, f"Reasoning timed out after {timeout_seconds}s")


class ReasoningError(ReasoningFailure):
    """The reasoning engine failed or produced an unusable answer"""

    def __init__(self, query: str, reason: str):
        self.reason = reason
        super().__init__(query, f"Reasoning failed: {reason}")


class OperationCancelled(GoalPilotError):
    """In-flight work was cancelled by the operator"""

    def __init__(self, operation: str = "operation"):
        self.operation = operation
        super().__init__(f"{operation} cancelled")


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class PlanningFailed(GoalPilotError):
    """Decomposing an objective into a goal graph failed; nothing was committed"""

    def __init__(self, objective: str, reason: str):
        self.objective = objective
        self.reason = reason
        super().__init__(f"Planning failed: {reason}")


class GoalExecutionFailed(GoalPilotError):
    """Executing a single goal failed"""

    def __init__(
        self,
        goal_id: str,
        original_error: BaseException,
        action_type: Optional[str] = None,
    ):
        self.goal_id = goal_id
        self.action_type = action_type
        self.original_error = original_error
        action = f" (action {action_type!r})" if action_type else ""
        super().__init__(f"Goal {goal_id!r}{action} failed: {original_error}")

    @property
    def reason(self) -> str:
        """Short failure reason stored on the goal record"""
        if isinstance(self.original_error, OperationCancelled):
            return "cancelled"
        return str(self.original_error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal_id": self.goal_id,
            "action_type": self.action_type,
            "error_type": type(self.original_error).__name__,
            "error": str(self.original_error),
        }


class NoExecutableGoals(GoalPilotError):
    """Pending goals remain but none can run; reported, not raised"""

    def __init__(self, pending: List[Dict[str, Any]]):
        self.pending = list(pending)
        super().__init__(f"{len(self.pending)} pending goal(s) cannot become ready")
