"""Tests for goalpilot/infrastructure/config/settings.py."""

import pytest
from pydantic import ValidationError

from goalpilot.domain.models.goal import GoalHorizon
from goalpilot.domain.orchestration.policies import FailurePolicy
from goalpilot.infrastructure.config.settings import GoalPilotSettings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ("THINK_TIMEOUT", "FAILURE_POLICY", "MAX_FAILURES", "SCHEDULING_HORIZON", "LLM_MODEL"):
        monkeypatch.delenv(f"GOALPILOT_{name}", raising=False)


class TestGoalPilotSettings:
    def test_defaults(self) -> None:
        settings = GoalPilotSettings()
        assert settings.think_timeout == 60.0
        assert settings.action_timeout == 120.0
        assert settings.failure_policy == FailurePolicy.CONTINUE
        assert settings.max_failures == 3
        assert settings.scheduling_horizon == GoalHorizon.SHORT
        assert settings.recent_episodes == 5
        assert settings.similar_documents == 3
        assert settings.action_modules == []
        assert settings.load_world_state() is None

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOALPILOT_THINK_TIMEOUT", "5")
        monkeypatch.setenv("GOALPILOT_FAILURE_POLICY", "max_failures")
        monkeypatch.setenv("GOALPILOT_SCHEDULING_HORIZON", "medium")

        settings = GoalPilotSettings()

        assert settings.think_timeout == 5.0
        assert settings.failure_policy == FailurePolicy.MAX_FAILURES
        assert settings.scheduling_horizon == GoalHorizon.MEDIUM

    def test_dotenv_file(self, tmp_path) -> None:
        (tmp_path / ".env").write_text("GOALPILOT_MAX_FAILURES=7\n")
        assert GoalPilotSettings().max_failures == 7

    def test_invalid_timeout_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GoalPilotSettings(think_timeout=0)

    def test_world_state_file(self, tmp_path) -> None:
        path = tmp_path / "world.txt"
        path.write_text("Two servers, one is down.", encoding="utf-8")

        settings = GoalPilotSettings(world_state_path=path)

        assert settings.load_world_state() == "Two servers, one is down."
