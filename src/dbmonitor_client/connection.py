from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol

from .config import ClientOptions, ConnectionDescriptor, ProcedureCommand
from .errors import EncodingError, ProcedureCallError, RequestTimeoutError
from .identity import (
    build_display,
    build_key,
    normalize_admin,
    normalize_port,
    normalize_server,
    normalize_user,
)
from .protocol.catalog import Credentials, EncodedCall, ProcedureCatalog
from .protocol.execution_queue import ExecutionQueue
from .protocol.guarded_callback import GuardedCallback, resolve_future
from .protocol.response import (
    Response,
    ResponseCallback,
    failure_response,
    is_success,
)

logger = logging.getLogger("dbmonitor_client")


class Transport(Protocol):
    def send(
        self, url: str, call: EncodedCall, callback: ResponseCallback
    ) -> Any: ...


class Connection:
    """One deduplicated endpoint + credential + process descriptor."""

    def __init__(
        self,
        descriptor: ConnectionDescriptor,
        *,
        transport: Transport,
        catalog: ProcedureCatalog | None = None,
        options: ClientOptions | None = None,
        is_online: Callable[[], bool] | None = None,
    ) -> None:
        self._transport = transport
        self._catalog = catalog or ProcedureCatalog()
        self._options = options or ClientOptions()
        self._is_online = is_online or (lambda: True)

        self.server = normalize_server(descriptor.server)
        self.port = normalize_port(descriptor.port)
        self.admin = normalize_admin(descriptor.admin)
        self.user = normalize_user(descriptor.user)

        password = descriptor.password
        if password in ("", "null"):
            password = None
        self.password = None if descriptor.is_hashed_password else password
        self.hashed_password = password if descriptor.is_hashed_password else None

        self.process = descriptor.process
        self.key = build_key(
            self.server, self.port, self.admin, self.user, self.process
        )
        self.display = build_display(self.server, self.port, self.admin, self.user)

        self.metadata: dict[str, Any] = {}
        self.procedure_commands: list[ProcedureCommand] = []
        self.bootstrap_task: asyncio.Task[None] | None = None
        self._ready = False
        self._ready_event = asyncio.Event()

    def __repr__(self) -> str:
        return f"<Connection {self.display!r} key={self.key!r} ready={self._ready}>"

    # -- State ------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def url(self) -> str:
        return f"{self._options.scheme}://{self.server}:{self.port}{self._options.api_path}"

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            user=self.user,
            password=self.password,
            hashed_password=self.hashed_password,
            admin=self.admin,
        )

    @property
    def options(self) -> ClientOptions:
        return self._options

    def mark_ready(self) -> None:
        if self._ready:
            return
        self._ready = True
        self._ready_event.set()

    async def wait_ready(self) -> None:
        await self._ready_event.wait()

    # -- Execution --------------------------------------------------------

    def get_queue(self, *, timeout_ms: int | None = None) -> ExecutionQueue:
        return ExecutionQueue(self, timeout_ms=timeout_ms)

    def encode(self, procedure: str, parameters: Any = None) -> EncodedCall | EncodingError:
        return self._catalog.encode(procedure, parameters, self.credentials)

    def call_execute(
        self,
        procedure: str,
        parameters: Any,
        callback: ResponseCallback | None = None,
    ) -> Any:
        """Encode and send a call without any deadline.

        Encoding failures are reported through ``callback`` as a failure
        response. While the server is flagged offline nothing is sent.
        """
        call = self.encode(procedure, parameters)
        if isinstance(call, EncodingError):
            if callback is not None:
                callback(failure_response(f"PrepareStatement error: {call.message}"))
            return None

        if not self._is_online():
            logger.debug("Server flagged offline; not sending %s", procedure)
            return None

        return self._transport.send(self.url, call, callback or _ignore)

    def begin_execute(
        self,
        procedure: str,
        parameters: Any,
        callback: ResponseCallback,
        *,
        timeout_ms: int | None = None,
    ) -> GuardedCallback:
        guard = GuardedCallback(
            callback,
            self._options.call_timeout_ms if timeout_ms is None else timeout_ms,
        )
        self.call_execute(procedure, parameters, guard)
        return guard

    async def execute(
        self,
        procedure: str,
        parameters: Any = None,
        *,
        timeout_ms: int | None = None,
    ) -> Response:
        """Run a single call and return its response, which is a synthetic
        failure response on encoding errors and timeouts."""
        response, _guard = await self._run(procedure, parameters, timeout_ms)
        return response

    async def execute_checked(
        self,
        procedure: str,
        parameters: Any = None,
        *,
        timeout_ms: int | None = None,
    ) -> Response:
        """Like execute(), but raise instead of returning failure responses."""
        call = self.encode(procedure, parameters)
        if isinstance(call, EncodingError):
            raise call

        response, guard = await self._run(procedure, parameters, timeout_ms)
        if is_success(response):
            return response
        if guard.timed_out:
            raise RequestTimeoutError(
                f"{procedure} timed out on {self.display}"
            )
        raise ProcedureCallError(procedure, response)

    async def _run(
        self, procedure: str, parameters: Any, timeout_ms: int | None
    ) -> tuple[Response, GuardedCallback]:
        future: asyncio.Future[Response] = asyncio.get_running_loop().create_future()
        guard = self.begin_execute(
            procedure, parameters, resolve_future(future), timeout_ms=timeout_ms
        )
        try:
            return await future, guard
        finally:
            guard.cancel()


def _ignore(_response: Response) -> None:
    pass
