"""
Drain engine for the operation queue.

Replays queued ops against the remote store, front to back, one at a
time:
- Each op is dispatched to the matching idempotent remote call
- A failed op is kept for the next drain and does not stop the others,
  except the later ops of a session whose CreateSession failed, which
  are held back with it
- A synced CreateSession removes the local snapshot, since the remote
  copy is now authoritative
- At the end the queue is rewritten to hold only what is still pending

Replay is at-least-once: a crash after a remote success but before the
queue rewrite sends that op again on the next drain.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import assert_never

from ..local.session_store import LocalSessionStore
from ..remote.base import RemoteStore
from .ops import CreateSession, FinishSession, FinishWorkout, Op, UpdateSpotMakes, op_type
from .queue import OperationQueue

logger = logging.getLogger(__name__)


class DrainState(Enum):
    """Current state of the drain engine."""

    IDLE = "idle"
    DRAINING = "draining"


@dataclass
class DrainResult:
    """Outcome of one drain pass."""

    processed: int = 0
    failed: int = 0
    skipped: bool = False
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return not self.skipped and self.failed == 0


class DrainEngine:
    """Replays the operation queue against the remote store.

    Only one drain runs at a time. A drain requested while another is in
    flight returns 0 immediately without touching the queue.
    """

    def __init__(
        self,
        queue: OperationQueue,
        local_store: LocalSessionStore,
        remote: RemoteStore,
    ):
        """Initialize the drain engine.

        Args:
            queue: Queue of pending ops
            local_store: Local snapshots, cleaned up after a synced create
            remote: Remote system of record
        """
        self.queue = queue
        self.local_store = local_store
        self.remote = remote

        self._lock = asyncio.Lock()
        self._state = DrainState.IDLE
        self._last_result: DrainResult | None = None
        self._last_drain: datetime | None = None

    @property
    def state(self) -> DrainState:
        return self._state

    @property
    def last_result(self) -> DrainResult | None:
        """Result of the most recent completed or skipped drain."""
        return self._last_result

    @property
    def last_drain(self) -> datetime | None:
        return self._last_drain

    async def drain(self) -> int:
        """Replay all pending ops.

        Returns:
            Number of ops that reached the remote store

        Raises:
            StorageIOError: If the queue cannot be rewritten afterwards. The
                previous queue is then left intact and every op will be
                replayed on the next drain.
        """
        if self._lock.locked():
            logger.debug("Drain already in progress; ignoring trigger")
            self._last_result = DrainResult(skipped=True)
            return 0

        async with self._lock:
            self._state = DrainState.DRAINING
            try:
                result = await self._drain_once()
            finally:
                self._state = DrainState.IDLE

        self._last_result = result
        return result.processed

    async def _drain_once(self) -> DrainResult:
        snapshot = self.queue.read_all()
        if not snapshot:
            return DrainResult()

        start_time = datetime.now(UTC)
        result = DrainResult()
        failed: list[Op] = []
        unsynced = _UnsyncedCreates()

        logger.info(f"Draining {len(snapshot)} pending ops")
        for op in snapshot:
            # Field sets on rows that do not exist yet succeed remotely and are lost.
            blocker = unsynced.blocking(op)
            if blocker is not None:
                failed.append(op)
                result.errors.append(f"{op_type(op)}: session {blocker} not created yet")
                logger.debug(f"Holding {op_type(op)} until session {blocker} is created")
                continue

            try:
                await self._apply(op)
            except Exception as e:
                failed.append(op)
                result.errors.append(f"{op_type(op)}: {e}")
                logger.warning(f"Failed to sync {op_type(op)}: {e}")
                if isinstance(op, CreateSession):
                    unsynced.add(op)
                continue

            result.processed += 1
            if isinstance(op, CreateSession):
                await self._forget_local_copy(op.session_id)

        await self.queue.settle(snapshot, failed)

        result.failed = len(failed)
        result.duration_ms = int((datetime.now(UTC) - start_time).total_seconds() * 1000)
        self._last_drain = datetime.now(UTC)
        logger.info(
            f"Drain finished: {result.processed} synced, {result.failed} still pending "
            f"({result.duration_ms}ms)"
        )
        return result

    async def _apply(self, op: Op) -> None:
        """Send one op to the remote store."""
        if isinstance(op, CreateSession):
            await self.remote.create_session(op.session, op.position_attempts)
        elif isinstance(op, UpdateSpotMakes):
            await self.remote.set_position_attempt_makes(op.position_attempt_id, op.makes)
        elif isinstance(op, FinishSession):
            await self.remote.set_session_finished(op.session_id, op.finished_at)
        elif isinstance(op, FinishWorkout):
            await self.remote.set_workout_finished(op.workout_id)
        else:
            assert_never(op)

    async def _forget_local_copy(self, session_id: str) -> None:
        # The remote copy already succeeded; a leftover snapshot is harmless.
        try:
            await self.local_store.delete(session_id)
        except Exception as e:
            logger.warning(f"Synced session {session_id} but could not delete local copy: {e}")


class _UnsyncedCreates:
    """Sessions whose CreateSession failed earlier in the current pass."""

    def __init__(self) -> None:
        self.sessions: set[str] = set()
        self.attempts: dict[str, str] = {}
        self.workouts: dict[str, str] = {}

    def add(self, op: CreateSession) -> None:
        self.sessions.add(op.session_id)
        for attempt in op.position_attempts:
            self.attempts[attempt.id] = op.session_id
        if op.session.workout_id is not None:
            self.workouts[op.session.workout_id] = op.session_id

    def blocking(self, op: Op) -> str | None:
        """Id of the unsynced session ``op`` depends on, if any."""
        if isinstance(op, CreateSession):
            return None
        elif isinstance(op, UpdateSpotMakes):
            return self.attempts.get(op.position_attempt_id)
        elif isinstance(op, FinishSession):
            return op.session_id if op.session_id in self.sessions else None
        elif isinstance(op, FinishWorkout):
            return self.workouts.get(op.workout_id)
        else:
            assert_never(op)
