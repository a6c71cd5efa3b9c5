from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from .bootstrap import (
    ConnectionAddedHandler,
    compile_procedure_commands,
    load_connection_metadata,
)
from .config import ClientOptions, ConnectionDescriptor
from .connection import Connection, Transport
from .errors import EncodingError
from .identity import build_key
from .protocol.catalog import ProcedureCatalog
from .protocol.response import is_success
from .transport.http import HttpTransport

logger = logging.getLogger("dbmonitor_client")

TEST_PROCEDURE = "@Statistics"
TEST_PARAMETERS = ("TABLE", 0)


class ConnectionRegistry:
    """Owns every dashboard connection, keyed by identity.

    Create one per application and close it on shutdown; it is not a
    global. A transport passed in stays owned by the caller.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        options: ClientOptions | None = None,
        catalog: ProcedureCatalog | None = None,
    ) -> None:
        self._options = options or ClientOptions()
        self._catalog = catalog or ProcedureCatalog()
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpTransport()
        self._connections: dict[str, Connection] = {}
        self.is_server_connected = True

    # ── State ─────────────────────────────────────────────────────

    @property
    def options(self) -> ClientOptions:
        return self._options

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def catalog(self) -> ProcedureCatalog:
        return self._catalog

    @property
    def connections(self) -> Mapping[str, Connection]:
        return MappingProxyType(self._connections)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, key: object) -> bool:
        return key in self._connections

    # ── Connections ───────────────────────────────────────────────

    def create_connection(self, descriptor: ConnectionDescriptor) -> Connection:
        """Build a connection bound to this registry without storing it."""
        return Connection(
            descriptor,
            transport=self._transport,
            catalog=self._catalog,
            options=self._options,
            is_online=lambda: self.is_server_connected,
        )

    def add(
        self,
        descriptor: ConnectionDescriptor,
        procedure_names: Sequence[str] = (),
        parameters: Sequence[Any] = (),
        values: Sequence[Any] | None = None,
        on_connection_added: ConnectionAddedHandler | None = None,
    ) -> Connection:
        """Register a connection (replacing any with the same key) and start
        loading its metadata. Await ``connection.wait_ready()`` or pass
        ``on_connection_added`` to learn when it is usable."""
        connection = self.create_connection(descriptor)
        compile_procedure_commands(connection, procedure_names, parameters, values)

        if connection.key in self._connections:
            logger.debug("Replacing connection %s", connection.key)
        self._connections[connection.key] = connection

        load_connection_metadata(connection, on_connection_added)
        return connection

    def update(
        self,
        connection: Connection,
        procedure_names: Sequence[str],
        parameters: Sequence[Any],
        values: Sequence[Any] | None = None,
        on_connection_added: ConnectionAddedHandler | None = None,
    ) -> asyncio.Task[None] | None:
        """Reload metadata of an existing connection with new commands."""
        compile_procedure_commands(connection, procedure_names, parameters, values)
        return load_connection_metadata(connection, on_connection_added)

    def has(
        self,
        server: str | None,
        port: str | int | None,
        admin: bool | str,
        user: str | None,
        process: str | None,
    ) -> Connection | None:
        return self._connections.get(build_key(server, port, admin, user, process))

    def get(self, key: str) -> Connection | None:
        return self._connections.get(key)

    def remove(self, key: str) -> Connection | None:
        return self._connections.pop(key, None)

    # ── Probing ───────────────────────────────────────────────────

    async def test_connection(self, descriptor: ConnectionDescriptor) -> bool:
        """True when the server answers a statistics call successfully
        within the short test deadline."""
        connection = self.create_connection(descriptor)
        response = await connection.execute(
            TEST_PROCEDURE,
            list(TEST_PARAMETERS),
            timeout_ms=self._options.test_timeout_ms,
        )
        return is_success(response)

    async def check_server_connection(self, descriptor: ConnectionDescriptor) -> bool:
        """True when the API endpoint answers with HTTP 200, whatever the
        procedure outcome."""
        connection = self.create_connection(descriptor)
        call = connection.encode(TEST_PROCEDURE, list(TEST_PARAMETERS))
        if isinstance(call, EncodingError):
            return False

        probe = getattr(self._transport, "probe", None)
        if probe is None:
            return await self.test_connection(descriptor)

        status = await probe(connection.url, call.query, self._options.check_timeout_ms)
        return status == 200

    # ── Lifecycle ─────────────────────────────────────────────────

    async def aclose(self) -> None:
        for connection in self._connections.values():
            task = connection.bootstrap_task
            if task is not None and not task.done():
                task.cancel()
        self._connections.clear()

        if self._owns_transport and isinstance(self._transport, HttpTransport):
            await self._transport.aclose()

    async def __aenter__(self) -> ConnectionRegistry:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()
