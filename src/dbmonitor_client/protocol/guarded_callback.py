from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..config import DEFAULT_CALL_TIMEOUT_MS
from ..errors import RequestTimeoutError
from .response import Response, ResponseCallback, failure_response

logger = logging.getLogger("dbmonitor_client")


class GuardedCallback:
    """Wraps a response callback so it fires exactly once: with the real
    response, or with a synthetic timeout failure if the deadline passes
    first. Anything arriving after that is dropped."""

    __slots__ = ("_callback", "_timeout_ms", "_timeout_handle", "_fired", "_timed_out")

    def __init__(
        self,
        callback: ResponseCallback,
        timeout_ms: int = DEFAULT_CALL_TIMEOUT_MS,
    ) -> None:
        self._callback = callback
        self._timeout_ms = timeout_ms
        self._fired = False
        self._timed_out = False
        self._timeout_handle: asyncio.TimerHandle = (
            asyncio.get_running_loop().call_later(
                timeout_ms / 1000, self._handle_timeout
            )
        )

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def timed_out(self) -> bool:
        return self._timed_out

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    def __call__(self, response: Response) -> None:
        self._timeout_handle.cancel()
        if self._fired:
            if self._timed_out:
                logger.debug("Discarding response that arrived after timeout")
            return
        self._fired = True
        self._callback(response)

    def cancel(self) -> None:
        """Stop the deadline timer and suppress any later response."""
        self._timeout_handle.cancel()
        self._fired = True

    def _handle_timeout(self) -> None:
        if self._fired:
            return
        self._fired = True
        self._timed_out = True
        logger.warning("Procedure call timed out after %sms", self._timeout_ms)
        self._callback(failure_response(RequestTimeoutError().message))


def resolve_future(future: asyncio.Future[Any]) -> ResponseCallback:
    """Callback that completes ``future`` with the response it receives."""

    def callback(response: Response) -> None:
        if not future.done():
            future.set_result(response)

    return callback
