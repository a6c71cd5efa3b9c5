from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from dbmonitor_client import ClientOptions, Connection, ConnectionDescriptor
from dbmonitor_client.protocol.catalog import EncodedCall

Responder = Callable[[EncodedCall], "dict[str, Any] | None"]

OK = {"status": 1, "statusstring": None, "results": [{"data": []}]}


class FakeTransport:
    """Records sent calls. With a responder, answers on the next loop
    iteration; a responder returning None (or no responder) leaves the
    call pending until respond() is used."""

    def __init__(self, responder: Responder | None = None) -> None:
        self.sent: list[tuple[str, EncodedCall]] = []
        self.pending: list[tuple[EncodedCall, Callable[[dict], None]]] = []
        self._responder = responder

    @property
    def procedures(self) -> list[str]:
        return [call.procedure for _, call in self.sent]

    def send(self, url: str, call: EncodedCall, callback: Callable[[dict], None]) -> None:
        self.sent.append((url, call))
        response = self._responder(call) if self._responder else None
        if response is None:
            self.pending.append((call, callback))
        else:
            asyncio.get_running_loop().call_soon(callback, response)

    def respond(self, response: dict[str, Any], index: int = 0) -> None:
        _call, callback = self.pending.pop(index)
        callback(response)


def always_ok(call: EncodedCall) -> dict[str, Any]:
    return dict(OK)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport(always_ok)


@pytest.fixture
def make_connection() -> Callable[..., Connection]:
    def factory(
        transport: FakeTransport,
        *,
        call_timeout_ms: int = 1_000,
        **descriptor: Any,
    ) -> Connection:
        return Connection(
            ConnectionDescriptor(**descriptor),
            transport=transport,
            options=ClientOptions(call_timeout_ms=call_timeout_ms),
        )

    return factory
