from __future__ import annotations

import asyncio

import pytest

from dbmonitor_client.protocol.guarded_callback import GuardedCallback

REAL = {"status": 1, "statusstring": None, "results": [{"data": [[1]]}]}


class TestGuardedCallback:
    @pytest.mark.asyncio
    async def test_response_before_deadline(self) -> None:
        received: list[dict] = []
        guard = GuardedCallback(received.append, timeout_ms=30)

        guard(REAL)
        await asyncio.sleep(0.06)

        assert received == [REAL]
        assert guard.fired is True
        assert guard.timed_out is False

    @pytest.mark.asyncio
    async def test_timeout_fires_synthetic_failure(self) -> None:
        received: list[dict] = []
        guard = GuardedCallback(received.append, timeout_ms=10)

        await asyncio.sleep(0.05)

        assert len(received) == 1
        assert received[0]["status"] == -1
        assert received[0]["statusstring"] == "Query timeout."
        assert received[0]["results"] == []
        assert guard.timed_out is True

    @pytest.mark.asyncio
    async def test_late_response_is_discarded(self) -> None:
        received: list[dict] = []
        guard = GuardedCallback(received.append, timeout_ms=10)

        await asyncio.sleep(0.05)
        guard(REAL)

        assert len(received) == 1
        assert received[0]["status"] == -1

    @pytest.mark.asyncio
    async def test_duplicate_responses_fire_once(self) -> None:
        received: list[dict] = []
        guard = GuardedCallback(received.append, timeout_ms=1_000)

        guard(REAL)
        guard({"status": -2, "statusstring": "dup", "results": []})

        assert received == [REAL]

    @pytest.mark.asyncio
    async def test_cancel_suppresses_everything(self) -> None:
        received: list[dict] = []
        guard = GuardedCallback(received.append, timeout_ms=10)

        guard.cancel()
        await asyncio.sleep(0.05)
        guard(REAL)

        assert received == []

    def test_requires_running_loop(self) -> None:
        with pytest.raises(RuntimeError):
            GuardedCallback(lambda r: None)
