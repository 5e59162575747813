"""
Process-wide wiring of the sync core.

The queue, the local store and the drain engine are created once at
startup and handed to whoever needs them; nothing is a module-level
singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .config import SyncConfig
from .local.session_store import LocalSessionStore
from .remote.base import RemoteStore
from .remote.supabase import SupabaseRemoteStore
from .sync.connectivity import ConnectivityMonitor, DrainTrigger
from .sync.engine import DrainEngine
from .sync.queue import OperationQueue
from .workflow import SessionWorkflow

logger = logging.getLogger(__name__)


@dataclass
class OfflineSync:
    """All sync components for one process."""

    config: SyncConfig
    queue: OperationQueue
    local_store: LocalSessionStore
    remote: RemoteStore
    monitor: ConnectivityMonitor
    engine: DrainEngine
    trigger: DrainTrigger
    workflow: SessionWorkflow

    async def sync_now(self) -> int:
        """Drain immediately if connectivity is confirmed.

        Returns:
            Number of ops synced (0 when offline or a drain is running)
        """
        if not self.monitor.is_online:
            return 0
        return await self.engine.drain()

    async def close(self) -> None:
        self.trigger.close()
        await self.trigger.wait_idle()
        await self.monitor.stop_polling()
        await self.remote.close()

    async def __aenter__(self) -> OfflineSync:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def create_offline_sync(
    config: SyncConfig | None = None,
    remote: RemoteStore | None = None,
    monitor: ConnectivityMonitor | None = None,
) -> OfflineSync:
    """Create and initialize the sync core.

    Args:
        config: Sync configuration (read from the environment if omitted)
        remote: Remote store (a SupabaseRemoteStore built from config if omitted)
        monitor: Connectivity monitor (one probing config.probe_host if omitted)

    Returns:
        Initialized OfflineSync with the persisted queue loaded
    """
    config = config or SyncConfig.from_environment()
    queue = await OperationQueue.open(config.queue_path)
    local_store = LocalSessionStore(config.data_dir)
    remote = remote or SupabaseRemoteStore(config)
    monitor = monitor or ConnectivityMonitor(probe_host=config.probe_host)

    engine = DrainEngine(queue, local_store, remote)
    trigger = DrainTrigger(monitor, engine)
    workflow = SessionWorkflow(queue, local_store, remote, monitor)

    logger.info(
        f"Offline sync ready in {config.data_dir} with {queue.pending_count()} pending ops"
    )
    return OfflineSync(
        config=config,
        queue=queue,
        local_store=local_store,
        remote=remote,
        monitor=monitor,
        engine=engine,
        trigger=trigger,
        workflow=workflow,
    )
