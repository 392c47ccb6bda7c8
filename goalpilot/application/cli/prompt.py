from typing import Optional
import asyncio
import threading
import structlog

from goalpilot.domain.errors import GoalExecutionFailed
from goalpilot.domain.models.execution import ExecutionStats

logger = structlog.get_logger(__name__)


class ConsolePrompt:
    """Reads operator input without blocking the event loop

    Each read runs ``input()`` on a daemon thread so a pending prompt never
    keeps the process alive at shutdown.
    """

    def __init__(self, input_func=input):
        self._input = input_func

    async def ask(self, message: str) -> Optional[str]:
        """Prompt once; returns None when stdin is closed"""

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _deliver(value: Optional[str], error: Optional[BaseException] = None):
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(value)

        def _hand_off(*args):
            # The session may have ended while input() was blocked
            if loop.is_closed():
                return
            try:
                loop.call_soon_threadsafe(_deliver, *args)
            except RuntimeError:
                logger.debug("Prompt answer dropped, event loop closed")

        def _read():
            try:
                value: Optional[str] = self._input(message)
            except EOFError:
                value = None
            except Exception as e:
                _hand_off(None, e)
                return
            _hand_off(value)

        threading.Thread(target=_read, name="goalpilot-prompt", daemon=True).start()
        return await future


def interactive_continue_policy(prompt: ConsolePrompt):
    """Continue policy that asks the operator after every failed goal"""

    async def decide(failure: GoalExecutionFailed, stats: ExecutionStats) -> bool:
        logger.warning(
            "Goal failed",
            goal_id=failure.goal_id,
            error=failure.reason,
            completed=stats.completed,
            failed=stats.failed,
        )
        answer = await prompt.ask("\nContinue executing remaining goals? (y/n): ")
        return answer is not None and answer.strip().lower() == "y"

    return decide
