"""Runtime configuration for goalpilot."""

from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from goalpilot.domain.models.goal import GoalHorizon
from goalpilot.domain.orchestration.policies import FailurePolicy


class GoalPilotSettings(BaseSettings):
    """Orchestrator, reasoning and logging settings.

    Values come from ``GOALPILOT_*`` environment variables or a ``.env`` file.
    """

    # Time budgets (seconds)
    think_timeout: float = Field(default=60.0, gt=0, description="Budget for one reasoning call")
    action_timeout: float = Field(default=120.0, gt=0, description="Budget for one action invocation")
    planning_timeout: float = Field(default=120.0, gt=0, description="Budget for objective decomposition")
    memory_timeout: float = Field(default=10.0, gt=0, description="Budget for each memory query")

    # Failure handling
    failure_policy: FailurePolicy = Field(
        default=FailurePolicy.CONTINUE,
        description="What to do after a goal fails when running unattended",
    )
    max_failures: int = Field(
        default=3, ge=1, description="Failure threshold for the max_failures policy"
    )

    # Scheduling and reporting
    scheduling_horizon: GoalHorizon = Field(
        default=GoalHorizon.SHORT, description="Horizon considered for near-term execution"
    )
    recent_episodes: int = Field(default=5, ge=0, description="Experiences in the learning summary")
    similar_documents: int = Field(default=3, ge=0, description="Knowledge documents in the learning summary")

    # Reasoning backend
    llm_model: str = Field(
        default="anthropic:claude-3-5-sonnet-latest",
        description="Chat model in provider:model form",
    )
    llm_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    world_state_path: Optional[Path] = Field(
        default=None, description="Text file describing the environment"
    )
    action_modules: List[str] = Field(
        default_factory=list,
        description="Modules exposing register_actions(registry)",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="console or json")

    model_config = SettingsConfigDict(
        env_prefix="GOALPILOT_",
        env_file=".env",
        extra="ignore",
    )

    def load_world_state(self) -> Optional[str]:
        """Read the world state file, if one is configured"""
        if self.world_state_path is None:
            return None
        return self.world_state_path.read_text(encoding="utf-8")
