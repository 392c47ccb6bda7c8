from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum


class GoalStatus(str, Enum):
    """Stored goal status"""
    PENDING = "pending"
    READY = "ready"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GoalStatus.COMPLETED, GoalStatus.FAILED)


class GoalCondition(str, Enum):
    """Diagnostic classification of a goal, derived from status and dependencies"""
    PENDING = "pending"
    READY = "ready"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"
    UNREACHABLE = "unreachable"


class GoalHorizon(str, Enum):
    """Planning timescale of a goal"""
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class Goal(BaseModel):
    """A unit of intended work tracked by the goal graph"""
    id: str = Field(description="Unique goal identifier")
    description: str = Field(description="What the goal should achieve")
    status: GoalStatus = Field(default=GoalStatus.PENDING)
    horizon: GoalHorizon = Field(default=GoalHorizon.SHORT)
    dependencies: List[str] = Field(default_factory=list, description="Goal IDs this goal is blocked by")
    result: Optional[Any] = Field(None, description="Result payload of a completed goal")
    failure_reason: Optional[str] = Field(None, description="Why the goal failed")
    sequence: int = Field(default=0, description="Creation order within the graph")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def touch(self):
        """Update the modification timestamp"""
        self.updated_at = datetime.utcnow()


class GoalSpec(BaseModel):
    """A goal as proposed by objective decomposition"""
    id: str = Field(description="Goal identifier, referenced by dependencies")
    description: str
    horizon: GoalHorizon = Field(default=GoalHorizon.SHORT)
    dependencies: List[str] = Field(default_factory=list)

    def to_goal(self) -> Goal:
        return Goal(
            id=self.id,
            description=self.description,
            horizon=self.horizon,
            dependencies=list(self.dependencies),
        )


class GoalPlan(BaseModel):
    """Decomposition of an objective into goals"""
    objective: str
    goals: List[GoalSpec] = Field(default_factory=list)
