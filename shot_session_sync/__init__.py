"""
Shot Session Sync

Offline-first synchronization core for shot-tracking sessions.

Provides:
- Local session snapshots (one JSON file per session)
- A durable, deduplicating operation queue
- A drain engine that replays queued ops against the remote store
- Connectivity tracking that drains once per reconnect
- A session workflow that routes each action online or offline

Usage:

    >>> from shot_session_sync import SyncConfig, create_offline_sync
    >>> async with await create_offline_sync(SyncConfig.from_environment()) as sync:
    ...     sync.monitor.report(is_connected=False)
    ...     result = await sync.workflow.start_session(
    ...         user_id, "TRIPLES", "Morning threes", 10, spots
    ...     )
    ...     sync.workflow.pending_count()
    ...     sync.monitor.report(is_connected=True)  # drains in the background
"""

from .bootstrap import OfflineSync, create_offline_sync
from .config import SyncConfig
from .exceptions import (
    AuthenticationError,
    CircuitOpenError,
    ConfigurationError,
    RemoteStoreError,
    SessionStorageError,
    SessionValidationError,
    StorageConnectionError,
    StorageIOError,
)
from .local import LocalSessionStore
from .models import (
    PositionAttempt,
    Session,
    SessionSnapshot,
    SessionStatus,
    ShotType,
    SpotPlan,
    new_id,
)
from .remote import RemoteStore, SupabaseRemoteStore
from .sync import (
    ConnectivityMonitor,
    ConnectivityState,
    CreateSession,
    DrainEngine,
    DrainResult,
    DrainTrigger,
    FinishSession,
    FinishWorkout,
    Op,
    OperationQueue,
    UpdateSpotMakes,
)
from .workflow import OperationResult, SessionWorkflow

__version__ = "0.1.0"

__all__ = [
    # Wiring
    "OfflineSync",
    "create_offline_sync",
    "SyncConfig",
    # Models
    "PositionAttempt",
    "Session",
    "SessionSnapshot",
    "SessionStatus",
    "ShotType",
    "SpotPlan",
    "new_id",
    # Local store
    "LocalSessionStore",
    # Queue and replay
    "Op",
    "CreateSession",
    "UpdateSpotMakes",
    "FinishSession",
    "FinishWorkout",
    "OperationQueue",
    "DrainEngine",
    "DrainResult",
    "ConnectivityMonitor",
    "ConnectivityState",
    "DrainTrigger",
    # Remote
    "RemoteStore",
    "SupabaseRemoteStore",
    # Workflow
    "OperationResult",
    "SessionWorkflow",
    # Exceptions
    "SessionStorageError",
    "SessionValidationError",
    "StorageIOError",
    "RemoteStoreError",
    "StorageConnectionError",
    "AuthenticationError",
    "ConfigurationError",
    "CircuitOpenError",
]
