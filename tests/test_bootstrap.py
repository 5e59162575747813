"""Tests for create_offline_sync wiring."""

from pathlib import Path

from shot_session_sync.bootstrap import create_offline_sync
from shot_session_sync.config import SyncConfig
from shot_session_sync.models import ShotType, SpotPlan
from shot_session_sync.remote.supabase import SupabaseRemoteStore
from shot_session_sync.sync.connectivity import ConnectivityMonitor, ConnectivityState
from shot_session_sync.sync.ops import FinishWorkout
from shot_session_sync.sync.queue import OperationQueue

from .conftest import FakeRemoteStore


async def test_loads_persisted_queue(temp_dir: Path) -> None:
    config = SyncConfig(data_dir=temp_dir)
    queue = await OperationQueue.open(config.queue_path)
    await queue.enqueue(FinishWorkout("W1"))

    sync = await create_offline_sync(config, remote=FakeRemoteStore())

    assert sync.workflow.pending_count() == 1
    await sync.close()


async def test_builds_supabase_remote_from_config(temp_dir: Path) -> None:
    config = SyncConfig(
        supabase_url="https://abcd.supabase.co", supabase_key="anon", data_dir=temp_dir
    )

    async with await create_offline_sync(config) as sync:
        assert isinstance(sync.remote, SupabaseRemoteStore)
        assert sync.monitor.state is ConnectivityState.UNKNOWN


async def test_offline_session_syncs_after_reconnect(temp_dir: Path) -> None:
    remote = FakeRemoteStore()
    monitor = ConnectivityMonitor(initial=ConnectivityState.OFFLINE)

    async with await create_offline_sync(
        SyncConfig(data_dir=temp_dir), remote=remote, monitor=monitor
    ) as sync:
        result = await sync.workflow.start_session(
            "user-1", "TRIPLES", "Evening", 10, [SpotPlan("3pt_l1", ShotType.THREE_POINT)]
        )
        assert result.session_id is not None
        await sync.workflow.finish_session(result.session_id)
        assert await sync.sync_now() == 0

        monitor.set_state(ConnectivityState.ONLINE)
        await sync.trigger.wait_idle()

        assert sync.workflow.pending_count() == 0
        assert result.session_id in remote.sessions

    assert remote.closed


async def test_sync_now_drains_when_online(temp_dir: Path) -> None:
    remote = FakeRemoteStore()
    monitor = ConnectivityMonitor(initial=ConnectivityState.ONLINE)
    config = SyncConfig(data_dir=temp_dir)
    queue = await OperationQueue.open(config.queue_path)
    await queue.enqueue(FinishWorkout("W1"))

    async with await create_offline_sync(config, remote=remote, monitor=monitor) as sync:
        assert await sync.sync_now() == 1

    assert remote.finished_workouts == {"W1"}
