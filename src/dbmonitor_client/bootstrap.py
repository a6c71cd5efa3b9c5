from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Sequence

from .config import SUFFIXED_METADATA_PROCESSES, ProcedureCommand
from .connection import Connection
from .protocol.catalog import SYSPROC_DESCRIPTIONS
from .protocol.response import Response, first_result

logger = logging.getLogger("dbmonitor_client")

ConnectionAddedHandler = Callable[[Connection, bool], Any]


def compile_procedure_commands(
    connection: Connection,
    procedure_names: Sequence[str],
    parameters: Sequence[Any],
    values: Sequence[Any] | None = None,
) -> list[ProcedureCommand]:
    """Replace the connection's bootstrap commands with the given triples.

    ``values`` may be shorter than ``procedure_names``; missing entries mean
    the command sends ``parameter`` alone.
    """
    values = values or ()
    connection.procedure_commands = [
        ProcedureCommand(
            procedure=name,
            parameter=parameters[i],
            value=values[i] if i < len(values) else None,
        )
        for i, name in enumerate(procedure_names)
    ]
    return connection.procedure_commands


def metadata_key(command: ProcedureCommand, process: str | None) -> str:
    key = f"{command.procedure}_{command.parameter}"
    if process in SUFFIXED_METADATA_PROCESSES:
        key += f"_{process}"
    return key


def load_connection_metadata(
    connection: Connection,
    on_connection_added: ConnectionAddedHandler | None = None,
) -> asyncio.Task[None] | None:
    """Populate ``connection.metadata`` from its procedure commands, attach
    the sysproc reference, then mark the connection ready.

    Runs as two queue passes: the first issues every command in order, the
    second is empty and only exists so readiness and the caller's callback
    go through the same completion path as every other queue.
    """
    queue = connection.get_queue()
    queue.start()

    for command in connection.procedure_commands:
        queue.enqueue(
            command.procedure,
            command.parameters,
            _store_result(connection, metadata_key(command, connection.process)),
        )

    async def on_metadata_loaded(_state: Any, success: bool) -> None:
        if not success:
            logger.warning("Metadata load on %s did not fully succeed", connection.key)
        connection.metadata["sysprocs"] = SYSPROC_DESCRIPTIONS

        child = connection.get_queue()
        child.start(continue_on_failure=True)
        child.finalize(on_ready, success)
        await child.wait()

    async def on_ready(metadata_success: bool, _success: bool) -> None:
        connection.mark_ready()
        logger.debug("Connection %s is ready", connection.key)
        if on_connection_added is not None:
            result = on_connection_added(connection, metadata_success)
            if inspect.isawaitable(result):
                await result

    task = queue.finalize(on_metadata_loaded)
    connection.bootstrap_task = task
    return task


def _store_result(connection: Connection, key: str) -> Callable[[Response], None]:
    def callback(response: Response) -> None:
        connection.metadata[key] = first_result(response)

    return callback
