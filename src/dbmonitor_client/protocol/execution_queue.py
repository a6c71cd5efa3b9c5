from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from typing import TYPE_CHECKING, Any, Callable

from ..config import QueueState
from .response import Response, ResponseCallback, failure_response, is_success

if TYPE_CHECKING:
    from ..connection import Connection

logger = logging.getLogger("dbmonitor_client")

CompletionHandler = Callable[[Any, bool], Any]

# Leading marker consumed by the first advance, so dispatch always starts
# from the front of the sequence.
_START = object()


class ExecutionQueue:
    """Runs procedure calls against one connection strictly in enqueue order,
    one at a time, and reports the aggregate outcome to a completion
    handler once the sequence is exhausted or halted."""

    def __init__(self, connection: Connection, *, timeout_ms: int | None = None) -> None:
        self._connection = connection
        self._timeout_ms = timeout_ms
        self._items: deque[Any] = deque()
        self._state: QueueState = "idle"
        self._success = False
        self._continue_on_failure = False
        self._on_complete: tuple[CompletionHandler | None, Any] | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def success(self) -> bool:
        return self._success

    @property
    def pending_count(self) -> int:
        return sum(1 for item in self._items if item is not _START)

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    # -- Building ---------------------------------------------------------

    def start(self, continue_on_failure: bool = False) -> ExecutionQueue | None:
        """Begin a new sequence. Returns None if one is already in progress."""
        if self._state in ("running", "draining"):
            return None

        self._continue_on_failure = continue_on_failure is True
        self._on_complete = None
        self._success = True
        self._items.append(_START)
        self._state = "running"
        return self

    def enqueue(
        self,
        procedure: str,
        parameters: Any = None,
        callback: ResponseCallback | None = None,
    ) -> ExecutionQueue:
        self._items.append(_QueueItem(procedure, parameters, callback))
        return self

    def finalize(
        self, handler: CompletionHandler | None = None, state: Any = None
    ) -> asyncio.Task[None] | None:
        """Register the completion handler and start draining if not
        already draining. Returns the drain task when one was started."""
        self._on_complete = (handler, state)
        if self._state == "draining":
            return None

        self._state = "draining"
        self._task = asyncio.get_running_loop().create_task(self._drain())
        return self._task

    async def wait(self) -> bool:
        if self._task is not None:
            await self._task
        return self._success

    # -- Driving ----------------------------------------------------------

    def _advance(self) -> _QueueItem | None:
        if self._items:
            self._items.popleft()
        if self._items and (self._success or self._continue_on_failure):
            return self._items[0]
        return None

    async def _drain(self) -> None:
        item = self._advance()
        while item is not None:
            logger.debug(
                "Dispatching %s on %s", item.procedure, self._connection.key
            )
            try:
                response = await self._connection.execute(
                    item.procedure, item.parameters, timeout_ms=self._timeout_ms
                )
            except Exception as e:
                logger.exception("Procedure %s could not be dispatched", item.procedure)
                response = failure_response(str(e))
            await self._handle_response(item, response)
            item = self._advance()

        if self._items:
            logger.debug(
                "Queue on %s halted with %d call(s) skipped",
                self._connection.key,
                self.pending_count,
            )
            self._items.clear()

        self._state = "done"
        await self._complete()

    async def _handle_response(self, item: _QueueItem, response: Response) -> None:
        try:
            if not is_success(response):
                self._success = False
            if item.callback is not None:
                result = item.callback(response)
                if inspect.isawaitable(result):
                    await result
        except Exception:
            self._success = False
            logger.exception("Callback error for %s", item.procedure)

    async def _complete(self) -> None:
        if self._on_complete is None:
            return
        handler, state = self._on_complete
        if handler is None:
            return
        try:
            result = handler(state, self._success)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Queue completion handler error")


class _QueueItem:
    __slots__ = ("procedure", "parameters", "callback")

    def __init__(
        self,
        procedure: str,
        parameters: Any,
        callback: ResponseCallback | None,
    ) -> None:
        self.procedure = procedure
        self.parameters = parameters
        self.callback = callback
