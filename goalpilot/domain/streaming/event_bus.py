from typing import Awaitable, Callable, Dict, List, Optional, Set, Union
from collections import defaultdict
import asyncio
import inspect
import structlog

from goalpilot.domain.streaming.events import BaseEvent, EventType

logger = structlog.get_logger(__name__)

EventHandler = Callable[[BaseEvent], Union[None, Awaitable[None]]]


class EventBus:
    """Publishes typed events to subscribers without waiting on them

    Inside a running event loop every handler runs in its own task, so a slow
    or failing subscriber never holds up the publisher. Outside a loop,
    handlers are called inline.
    """

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = defaultdict(list)
        self._wildcard_handlers: List[EventHandler] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, event_type: Union[EventType, str], handler: EventHandler) -> Callable[[], None]:
        """Register a handler for one event type; returns an unsubscribe callable"""

        event_type = EventType(event_type)
        self._handlers[event_type].append(handler)
        return lambda: self.unsubscribe(event_type, handler)

    def subscribe_all(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler for every event type"""

        self._wildcard_handlers.append(handler)
        return lambda: self._remove(self._wildcard_handlers, handler)

    def unsubscribe(self, event_type: Union[EventType, str], handler: EventHandler):
        self._remove(self._handlers[EventType(event_type)], handler)

    @staticmethod
    def _remove(handlers: List[EventHandler], handler: EventHandler):
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: BaseEvent):
        """Dispatch an event to its subscribers (fire-and-forget)"""

        handlers = [*self._handlers.get(event.type, ()), *self._wildcard_handlers]
        if not handlers:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for handler in handlers:
            if loop is None:
                self._dispatch_inline(handler, event)
                continue
            task = loop.create_task(self._dispatch(handler, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _dispatch(self, handler: EventHandler, event: BaseEvent):
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error in event handler",
                         event_type=event.type.value,
                         error=str(e))

    def _dispatch_inline(self, handler: EventHandler, event: BaseEvent):
        try:
            result = handler(event)
        except Exception as e:
            logger.error("Error in event handler",
                         event_type=event.type.value,
                         error=str(e))
            return
        if inspect.iscoroutine(result):
            result.close()
            logger.warning("Async event handler skipped outside event loop",
                           event_type=event.type.value)

    @property
    def pending(self) -> int:
        """Number of handler invocations still running"""
        return len(self._pending)

    async def drain(self, timeout: Optional[float] = None):
        """Wait for in-flight handler invocations to finish"""

        while self._pending:
            done, _ = await asyncio.wait(set(self._pending), timeout=timeout)
            if not done:
                logger.warning("Event handlers still running after drain timeout",
                               pending=len(self._pending))
                return

    async def aclose(self):
        """Cancel in-flight handler invocations"""

        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
