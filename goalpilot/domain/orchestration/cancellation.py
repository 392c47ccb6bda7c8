from typing import Any, Awaitable, Optional, TypeVar
import asyncio
import inspect
import structlog

from goalpilot.domain.errors import OperationCancelled

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# How long a cancelled call may take to unwind before we stop waiting on it
CANCEL_GRACE_SECONDS = 1.0


class CancellationToken:
    """Operator-controlled cancellation signal threaded through a run"""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled"):
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self):
        await self._event.wait()

    def raise_if_cancelled(self, operation: str = "operation"):
        if self.cancelled:
            raise OperationCancelled(operation)


async def run_guarded(
    awaitable: Awaitable[T],
    timeout: Optional[float] = None,
    token: Optional[CancellationToken] = None,
    operation: str = "operation",
) -> T:
    """Await a suspending call under a timeout, racing the cancellation token

    Raises ``asyncio.TimeoutError`` when the timeout elapses and
    ``OperationCancelled`` when the token fires first. Either way the call
    itself is cancelled.
    """

    if token is not None and token.cancelled:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise OperationCancelled(operation)

    task = asyncio.ensure_future(awaitable)
    waiters = {task}
    cancel_waiter = None
    if token is not None:
        cancel_waiter = asyncio.ensure_future(token.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if task in done:
        return task.result()

    await _abandon(task, operation)

    if token is not None and token.cancelled:
        raise OperationCancelled(operation)
    raise asyncio.TimeoutError(f"{operation} timed out after {timeout}s")


async def _abandon(task: "asyncio.Future[Any]", operation: str):
    task.cancel()
    task.add_done_callback(_consume_result)
    await asyncio.wait({task}, timeout=CANCEL_GRACE_SECONDS)
    if not task.done():
        logger.warning("Cancelled call still running", operation=operation)


def _consume_result(task: "asyncio.Future[Any]"):
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Abandoned call raised", error=str(task.exception()))
