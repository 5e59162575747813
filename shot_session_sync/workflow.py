"""
Session workflow: the caller side of offline sync.

Decides, for every user action, whether the change goes straight to the
remote store or into the local snapshot plus the operation queue:

- Online, and nothing queued for the same session: write remotely.
- Offline, connectivity unknown, or earlier changes to the session still
  queued: write locally and enqueue, so replay keeps create-before-update
  order.
- A remote write that fails while online falls back to the offline path;
  every remote call is idempotent, so replaying it later is safe.

Reads try the remote store first and fall back to the local snapshot.

Every mutating call returns an :class:`OperationResult` instead of
raising, and every failure is logged, so screens can show an error
without wrapping each call in try/except.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from .exceptions import SessionStorageError
from .local.session_store import LocalSessionStore
from .logging_utils import SyncLoggerAdapter
from .models import PositionAttempt, Session, SessionSnapshot, SessionStatus, SpotPlan, new_id
from .remote.base import RemoteStore
from .sync.connectivity import ConnectivityMonitor
from .sync.ops import CreateSession, FinishSession, FinishWorkout, Op, UpdateSpotMakes
from .sync.queue import OperationQueue

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Outcome of a workflow action.

    Attributes:
        ok: The change was stored somewhere durable (remote or queue)
        offline: The change went to the local snapshot and queue
        session_id: Session the action applied to, if any
        error: Description of the failure when ok is False
    """

    ok: bool
    offline: bool = False
    session_id: str | None = None
    error: str | None = None


class SessionWorkflow:
    """Routes session actions to the remote store or the offline pair."""

    def __init__(
        self,
        queue: OperationQueue,
        local_store: LocalSessionStore,
        remote: RemoteStore,
        monitor: ConnectivityMonitor,
    ):
        self.queue = queue
        self.local_store = local_store
        self.remote = remote
        self.monitor = monitor

    def pending_count(self) -> int:
        """Number of changes waiting for sync, for the "N pending" badge."""
        return self.queue.pending_count()

    def _log(self, session_id: str | None) -> SyncLoggerAdapter:
        return SyncLoggerAdapter(logger, {"session_id": session_id})

    def _must_queue(
        self,
        session_id: str | None = None,
        workout_id: str | None = None,
        position_attempt_id: str | None = None,
    ) -> bool:
        if not self.monitor.is_online:
            return True
        if session_id is not None and self.queue.pending_for_session(session_id):
            return True
        # An older queued value would overwrite a direct write on replay.
        if position_attempt_id is not None and self.queue.has_pending_makes(position_attempt_id):
            return True
        if workout_id is not None:
            return any(
                isinstance(op, CreateSession) and op.session.workout_id == workout_id
                for op in self.queue.read_all()
            )
        return False

    async def start_session(
        self,
        user_id: str,
        kind: str,
        title: str,
        default_target_attempts: int,
        spots: list[SpotPlan],
        workout_id: str | None = None,
    ) -> OperationResult:
        """Create a session with one position attempt per planned spot.

        The session id is generated locally and kept on sync.
        """
        session = Session(
            id=new_id(),
            user_id=user_id,
            kind=kind,
            title=title,
            default_target_attempts=default_target_attempts,
            started_at=datetime.now(UTC),
            status=SessionStatus.IN_PROGRESS,
            workout_id=workout_id,
        )
        attempts = []
        for index, plan in enumerate(spots):
            target = plan.target_attempts or default_target_attempts
            attempts.append(
                PositionAttempt(
                    id=new_id(),
                    session_id=session.id,
                    user_id=user_id,
                    spot_key=plan.spot_key,
                    shot_type=plan.shot_type,
                    target_attempts=target,
                    attempts=target,
                    makes=0,
                    order_index=index,
                )
            )

        log = self._log(session.id)
        if not self._must_queue(workout_id=workout_id):
            try:
                await self.remote.create_session(session, attempts)
                log.info(f"Created session {session.id} remotely")
                return OperationResult(ok=True, session_id=session.id)
            except Exception as e:
                log.warning(f"Remote create failed, keeping session offline: {e}")

        async def store_locally() -> None:
            await self.local_store.save(session, attempts)

        return await self._queue(CreateSession(session, attempts), session.id, store_locally)

    async def record_makes(
        self,
        session_id: str,
        position_attempt_id: str,
        makes: int,
        attempts: int,
    ) -> OperationResult:
        """Record the makes for one position, clamped to ``[0, attempts]``."""
        makes = max(0, min(attempts, makes))
        log = self._log(session_id)

        if not self._must_queue(session_id=session_id, position_attempt_id=position_attempt_id):
            try:
                await self.remote.set_position_attempt_makes(position_attempt_id, makes)
                return OperationResult(ok=True, session_id=session_id)
            except Exception as e:
                log.warning(f"Remote makes update failed, queueing it: {e}")

        async def store_locally() -> None:
            await self.local_store.update_makes(session_id, position_attempt_id, makes)

        return await self._queue(
            UpdateSpotMakes(position_attempt_id, makes), session_id, store_locally
        )

    async def finish_session(self, session_id: str) -> OperationResult:
        """Mark a session done as of now."""
        finished_at = datetime.now(UTC)
        log = self._log(session_id)

        if not self._must_queue(session_id=session_id):
            try:
                await self.remote.set_session_finished(session_id, finished_at)
                log.info(f"Finished session {session_id} remotely")
                return OperationResult(ok=True, session_id=session_id)
            except Exception as e:
                log.warning(f"Remote finish failed, queueing it: {e}")

        async def store_locally() -> None:
            await self.local_store.finish(session_id)

        return await self._queue(FinishSession(session_id, finished_at), session_id, store_locally)

    async def finish_workout(self, workout_id: str) -> OperationResult:
        """Mark the parent workout done."""
        if not self._must_queue(workout_id=workout_id):
            try:
                await self.remote.set_workout_finished(workout_id)
                return OperationResult(ok=True)
            except Exception as e:
                logger.warning(f"Remote workout finish failed, queueing it: {e}")

        return await self._queue(FinishWorkout(workout_id), None, None)

    async def load_session(self, session_id: str) -> SessionSnapshot | None:
        """Read a session, preferring the remote copy.

        Falls back to the local snapshot when offline, when the remote
        read fails, or when the remote store has no such session yet.
        """
        log = self._log(session_id)
        if self.monitor.is_online:
            try:
                snapshot = await self.remote.fetch_session(session_id)
                if snapshot is not None:
                    return snapshot
            except Exception as e:
                log.warning(f"Remote read failed, using local copy: {e}")

        try:
            return await self.local_store.load(session_id, fallback=True)
        except SessionStorageError as e:
            log.error(f"Could not load session {session_id}: {e}")
            return None

    async def _queue(
        self,
        op: Op,
        session_id: str | None,
        store_locally: Callable[[], Awaitable[None]] | None,
    ) -> OperationResult:
        log = self._log(session_id)
        try:
            if store_locally is not None:
                await store_locally()
            await self.queue.enqueue(op)
        except SessionStorageError as e:
            log.error(f"Could not store change offline: {e}")
            return OperationResult(ok=False, offline=True, session_id=session_id, error=str(e))

        return OperationResult(ok=True, offline=True, session_id=session_id)
