from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..errors import TransportClosedError
from ..protocol.catalog import EncodedCall
from ..protocol.response import Response, ResponseCallback, failure_response

logger = logging.getLogger("dbmonitor_client")

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class HttpTransport:
    """Posts encoded procedure calls to the database's JSON API.

    Every send resolves its callback exactly once. HTTP and network
    failures become failure responses instead of exceptions.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._owns_client = client is None
        # Deadlines are enforced by the caller, not by httpx.
        self._client = client or httpx.AsyncClient(timeout=None)
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # -- Communication ----------------------------------------------------

    def send(
        self, url: str, call: EncodedCall, callback: ResponseCallback
    ) -> asyncio.Task[None] | None:
        """Fire-and-forget post; ``callback`` receives the response later."""
        if self._closed:
            callback(failure_response(TransportClosedError().message))
            return None

        task = asyncio.get_running_loop().create_task(
            self._deliver(url, call, callback)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def post(self, url: str, call: EncodedCall) -> Response:
        if self._closed:
            return failure_response(TransportClosedError().message)

        try:
            response = await self._client.post(
                url, content=call.query, headers=FORM_HEADERS
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("POST %s failed: %s", url, e)
            return failure_response(f"Connection error: {e}")

        if response.status_code != 200:
            return failure_response(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status=-response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            return failure_response("Malformed response from server")

        if not isinstance(body, dict):
            return failure_response("Unexpected response from server")
        body.setdefault("results", [])
        return body

    async def probe(self, url: str, query: str, timeout_ms: int) -> int:
        """GET ``url?query`` and return the HTTP status, or 0 when the
        server could not be reached in time."""
        try:
            response = await self._client.get(
                f"{url}?{query}", timeout=timeout_ms / 1000
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("Probe of %s failed: %s", url, e)
            return 0
        return response.status_code

    # -- Lifecycle --------------------------------------------------------

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    # -- Private ----------------------------------------------------------

    async def _deliver(
        self, url: str, call: EncodedCall, callback: ResponseCallback
    ) -> None:
        response = await self.post(url, call)
        try:
            callback(response)
        except Exception:
            logger.exception("Response callback error for %s", call.procedure)
