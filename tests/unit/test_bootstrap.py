from __future__ import annotations

import asyncio
from typing import Any

import pytest

from dbmonitor_client.bootstrap import (
    compile_procedure_commands,
    load_connection_metadata,
    metadata_key,
)
from dbmonitor_client.config import ProcedureCommand
from dbmonitor_client.protocol.catalog import SYSPROC_DESCRIPTIONS, EncodedCall
from tests.conftest import FakeTransport

TABLE_ROWS = {"schema": [{"name": "TABLE_NAME"}], "data": [["ORDERS"]]}


def statistics_responder(call: EncodedCall) -> dict[str, Any]:
    if call.procedure == "@Statistics":
        return {"status": 1, "statusstring": None, "results": [TABLE_ROWS, {"data": []}]}
    if call.procedure == "@SystemCatalog":
        return {"status": -2, "statusstring": "denied", "results": []}
    return {"status": 1, "statusstring": None, "results": [{"data": [["ok"]]}]}


class TestCompileProcedureCommands:
    def test_builds_triples(self, make_connection) -> None:
        connection = make_connection(FakeTransport())

        commands = compile_procedure_commands(
            connection,
            ["@Statistics", "@SystemInformation"],
            ["TABLE", "OVERVIEW"],
            [0],
        )

        assert commands == [
            ProcedureCommand("@Statistics", "TABLE", 0),
            ProcedureCommand("@SystemInformation", "OVERVIEW", None),
        ]
        assert connection.procedure_commands is commands
        assert commands[0].parameters == ["TABLE", 0]
        assert commands[1].parameters == "OVERVIEW"

    def test_replaces_previous_commands(self, make_connection) -> None:
        connection = make_connection(FakeTransport())
        compile_procedure_commands(connection, ["@Statistics"], ["TABLE"], [0])
        compile_procedure_commands(connection, ["@SystemCatalog"], ["TABLES"])

        assert [c.procedure for c in connection.procedure_commands] == ["@SystemCatalog"]


class TestMetadataKey:
    def test_plain_key(self) -> None:
        assert metadata_key(ProcedureCommand("@Statistics", "TABLE", 0), "DASHBOARD") == "@Statistics_TABLE"

    @pytest.mark.parametrize("process", ["GRAPH_MEMORY", "GRAPH_TRANSACTION", "TABLE_INFORMATION"])
    def test_suffixed_processes(self, process: str) -> None:
        key = metadata_key(ProcedureCommand("@Statistics", "MEMORY", 0), process)
        assert key == f"@Statistics_MEMORY_{process}"


class TestLoadConnectionMetadata:
    @pytest.mark.asyncio
    async def test_populates_metadata_and_marks_ready(self, make_connection) -> None:
        transport = FakeTransport(statistics_responder)
        connection = make_connection(transport, process="DASHBOARD")
        added: list[tuple[Any, bool]] = []

        compile_procedure_commands(connection, ["@Statistics"], ["TABLE"], [0])
        task = load_connection_metadata(connection, lambda c, ok: added.append((c, ok)))
        assert task is connection.bootstrap_task
        await task

        assert connection.metadata["@Statistics_TABLE"] == TABLE_ROWS
        assert connection.metadata["sysprocs"] is SYSPROC_DESCRIPTIONS
        assert connection.ready is True
        assert added == [(connection, True)]
        assert transport.sent[0][1].parameters == '["TABLE",0]'

    @pytest.mark.asyncio
    async def test_not_ready_while_loading(self, make_connection) -> None:
        transport = FakeTransport()
        connection = make_connection(transport)
        compile_procedure_commands(connection, ["@Statistics"], ["TABLE"], [0])

        load_connection_metadata(connection)
        await asyncio.sleep(0)

        assert connection.ready is False
        assert "sysprocs" not in connection.metadata

        transport.respond({"status": 1, "results": [TABLE_ROWS]})
        await asyncio.wait_for(connection.wait_ready(), timeout=1)

        assert connection.ready is True
        assert connection.metadata["@Statistics_TABLE"] == TABLE_ROWS

    @pytest.mark.asyncio
    async def test_failure_still_completes_bootstrap(self, make_connection) -> None:
        transport = FakeTransport(statistics_responder)
        connection = make_connection(transport)
        added: list[bool] = []

        compile_procedure_commands(
            connection,
            ["@SystemCatalog", "@Statistics"],
            ["TABLES", "TABLE"],
            [None, 0],
        )
        await load_connection_metadata(connection, lambda c, ok: added.append(ok))

        assert transport.procedures == ["@SystemCatalog"]
        assert connection.metadata["@SystemCatalog_TABLES"] is None
        assert "@Statistics_TABLE" not in connection.metadata
        assert connection.metadata["sysprocs"] is SYSPROC_DESCRIPTIONS
        assert connection.ready is True
        assert added == [False]

    @pytest.mark.asyncio
    async def test_suffix_follows_connection_process(self, make_connection) -> None:
        connection = make_connection(
            FakeTransport(statistics_responder), process="GRAPH_MEMORY"
        )
        compile_procedure_commands(connection, ["@Statistics"], ["MEMORY"], [0])

        await load_connection_metadata(connection)

        assert connection.metadata["@Statistics_MEMORY_GRAPH_MEMORY"] == TABLE_ROWS

    @pytest.mark.asyncio
    async def test_async_connection_added_handler(self, make_connection) -> None:
        connection = make_connection(FakeTransport(statistics_responder))
        seen: list[bool] = []

        async def on_added(conn: Any, ok: bool) -> None:
            await asyncio.sleep(0)
            seen.append(conn.ready)

        await load_connection_metadata(connection, on_added)

        assert seen == [True]
