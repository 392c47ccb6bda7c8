from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

from goalpilot.domain.errors import NoExecutableGoals
from goalpilot.domain.models.goal import Goal
from goalpilot.domain.models.memory import Experience, KnowledgeDocument


class RunOutcome(str, Enum):
    """How an objective run ended"""
    COMPLETED = "completed"
    DEADLOCKED = "deadlocked"
    STOPPED = "stopped"
    CANCELLED = "cancelled"


class ExecutionStats(BaseModel):
    """Run-scoped goal counters"""
    completed: int = 0
    failed: int = 0
    total: int = 0

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.completed / self.total

    def record_success(self):
        self.completed += 1
        self.total += 1

    def record_failure(self):
        self.failed += 1
        self.total += 1


class PendingGoalDiagnostic(BaseModel):
    """A pending goal that cannot run, with what holds it back"""
    goal: Goal
    blocking: List[Goal] = Field(default_factory=list)
    unresolved: List[str] = Field(default_factory=list, description="Dependency ids missing from the graph")
    unreachable: bool = False


class GoalFailure(BaseModel):
    """Structured record of a failed goal"""
    goal_id: str
    action_type: Optional[str] = None
    error_type: str
    error: str


class RunReport(BaseModel):
    """Summary of one objective run"""
    objective: str
    run_id: str
    outcome: RunOutcome = RunOutcome.COMPLETED
    stats: ExecutionStats = Field(default_factory=ExecutionStats)
    goals: List[Goal] = Field(default_factory=list)
    failures: List[GoalFailure] = Field(default_factory=list)
    pending_diagnostics: List[PendingGoalDiagnostic] = Field(default_factory=list)
    recent_experiences: List[Experience] = Field(default_factory=list)
    relevant_documents: List[KnowledgeDocument] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def deadlock(self) -> Optional[NoExecutableGoals]:
        """Report-only diagnostic for goals that never became executable"""
        if self.outcome != RunOutcome.DEADLOCKED:
            return None
        return NoExecutableGoals([
            {
                "id": diag.goal.id,
                "description": diag.goal.description,
                "blocked_by": [
                    {"id": g.id, "description": g.description, "status": g.status.value}
                    for g in diag.blocking
                ],
                "unresolved": diag.unresolved,
            }
            for diag in self.pending_diagnostics
        ])

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the run"""
        return {
            "objective": self.objective,
            "run_id": self.run_id,
            "outcome": self.outcome.value,
            "completed": self.stats.completed,
            "failed": self.stats.failed,
            "total": self.stats.total,
            "success_rate": round(self.stats.success_rate * 100),
            "never_executed": len(self.pending_diagnostics),
            "recent_experiences": len(self.recent_experiences),
            "relevant_documents": len(self.relevant_documents),
        }
