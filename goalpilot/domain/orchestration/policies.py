from typing import Awaitable, Callable, Union
from enum import Enum

from goalpilot.domain.errors import GoalExecutionFailed
from goalpilot.domain.models.execution import ExecutionStats

# Decides after a goal failure whether the run keeps going
ContinuePolicy = Callable[[GoalExecutionFailed, ExecutionStats], Awaitable[bool]]


class FailurePolicy(str, Enum):
    """Unattended continue-on-failure behavior"""
    CONTINUE = "continue"
    STOP = "stop"
    MAX_FAILURES = "max_failures"


def build_continue_policy(policy: Union[FailurePolicy, str], max_failures: int = 3) -> ContinuePolicy:
    """Create a continue policy from configuration"""

    policy = FailurePolicy(policy)

    async def decide(failure: GoalExecutionFailed, stats: ExecutionStats) -> bool:
        if policy == FailurePolicy.CONTINUE:
            return True
        if policy == FailurePolicy.STOP:
            return False
        return stats.failed < max_failures

    return decide


async def always_continue(failure: GoalExecutionFailed, stats: ExecutionStats) -> bool:
    return True
