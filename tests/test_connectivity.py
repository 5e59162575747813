"""Tests for ConnectivityMonitor and DrainTrigger."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from shot_session_sync.sync.connectivity import (
    ConnectivityMonitor,
    ConnectivityState,
    DrainTrigger,
)

ONLINE = ConnectivityState.ONLINE
OFFLINE = ConnectivityState.OFFLINE
UNKNOWN = ConnectivityState.UNKNOWN


class TestConnectivityMonitor:
    def test_starts_unknown_and_not_online(self) -> None:
        monitor = ConnectivityMonitor()

        assert monitor.state is UNKNOWN
        assert monitor.is_online is False

    def test_listeners_only_see_changes(self) -> None:
        monitor = ConnectivityMonitor()
        seen: list[tuple[ConnectivityState, ConnectivityState]] = []
        monitor.add_listener(lambda prev, cur: seen.append((prev, cur)))

        monitor.set_state(ONLINE)
        monitor.set_state(ONLINE)
        monitor.set_state(OFFLINE)

        assert seen == [(UNKNOWN, ONLINE), (ONLINE, OFFLINE)]

    def test_remove_listener(self) -> None:
        monitor = ConnectivityMonitor()
        seen: list[ConnectivityState] = []
        remove = monitor.add_listener(lambda prev, cur: seen.append(cur))

        remove()
        remove()
        monitor.set_state(ONLINE)

        assert seen == []

    def test_failing_listener_does_not_block_others(self) -> None:
        monitor = ConnectivityMonitor()
        seen: list[ConnectivityState] = []

        def broken(prev: ConnectivityState, cur: ConnectivityState) -> None:
            raise RuntimeError("boom")

        monitor.add_listener(broken)
        monitor.add_listener(lambda prev, cur: seen.append(cur))
        monitor.set_state(OFFLINE)

        assert seen == [OFFLINE]

    @pytest.mark.parametrize(
        ("connected", "reachable", "expected"),
        [
            (None, None, UNKNOWN),
            (True, None, ONLINE),
            (True, True, ONLINE),
            (True, False, OFFLINE),
            (False, None, OFFLINE),
        ],
    )
    def test_report(self, connected, reachable, expected) -> None:
        monitor = ConnectivityMonitor(initial=OFFLINE if expected is not OFFLINE else ONLINE)

        monitor.report(connected, reachable)

        assert monitor.state is expected

    async def test_probe_online_for_resolvable_host(self) -> None:
        monitor = ConnectivityMonitor(probe_host="localhost")

        assert await monitor.probe() is ONLINE
        assert monitor.is_online

    async def test_probe_offline_for_unresolvable_host(self) -> None:
        monitor = ConnectivityMonitor(probe_host="does-not-exist.invalid", initial=ONLINE)

        assert await monitor.probe() is OFFLINE


class TestDrainTrigger:
    @pytest.fixture
    def engine(self) -> AsyncMock:
        engine = AsyncMock()
        engine.drain.return_value = 0
        return engine

    async def test_drains_once_per_reconnect(self, engine: AsyncMock) -> None:
        monitor = ConnectivityMonitor(initial=OFFLINE)
        trigger = DrainTrigger(monitor, engine)

        monitor.set_state(ONLINE)
        monitor.set_state(ONLINE)
        await trigger.wait_idle()

        assert engine.drain.await_count == 1

        monitor.set_state(OFFLINE)
        monitor.set_state(ONLINE)
        await trigger.wait_idle()

        assert engine.drain.await_count == 2

    async def test_unknown_to_online_does_not_drain(self, engine: AsyncMock) -> None:
        monitor = ConnectivityMonitor()
        trigger = DrainTrigger(monitor, engine)

        monitor.set_state(ONLINE)
        await trigger.wait_idle()

        assert engine.drain.await_count == 0

    async def test_offline_unknown_online_drains_once(self, engine: AsyncMock) -> None:
        monitor = ConnectivityMonitor(initial=OFFLINE)
        trigger = DrainTrigger(monitor, engine)

        monitor.set_state(UNKNOWN)
        monitor.set_state(ONLINE)
        await trigger.wait_idle()

        assert engine.drain.await_count == 1

    async def test_going_offline_does_not_drain(self, engine: AsyncMock) -> None:
        monitor = ConnectivityMonitor(initial=ONLINE)
        trigger = DrainTrigger(monitor, engine)

        monitor.set_state(OFFLINE)
        monitor.set_state(UNKNOWN)
        await trigger.wait_idle()

        assert engine.drain.await_count == 0

    async def test_drain_error_is_contained(self, engine: AsyncMock) -> None:
        engine.drain.side_effect = RuntimeError("disk full")
        monitor = ConnectivityMonitor(initial=OFFLINE)
        trigger = DrainTrigger(monitor, engine)

        monitor.set_state(ONLINE)
        await trigger.wait_idle()

        assert trigger.pending_task is not None
        assert isinstance(trigger.pending_task.exception(), RuntimeError)

    async def test_close_stops_triggering(self, engine: AsyncMock) -> None:
        monitor = ConnectivityMonitor(initial=OFFLINE)
        trigger = DrainTrigger(monitor, engine)

        trigger.close()
        monitor.set_state(ONLINE)
        await trigger.wait_idle()

        assert engine.drain.await_count == 0

    async def test_report_from_another_thread_drains(self, engine: AsyncMock) -> None:
        monitor = ConnectivityMonitor(initial=OFFLINE)
        trigger = DrainTrigger(monitor, engine)

        await asyncio.to_thread(monitor.report, True)
        await asyncio.sleep(0)
        await trigger.wait_idle()

        assert engine.drain.await_count == 1
        assert trigger.pending_task is not None
