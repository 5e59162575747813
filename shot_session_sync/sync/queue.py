"""
Persistent queue of pending operations.

Holds the ops recorded while offline until the drain engine confirms
them against the remote store. The whole queue is written to a single
JSONL file on every mutation, so it survives process restarts; it is
loaded once at startup through :meth:`OperationQueue.open`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from ..exceptions import StorageIOError
from ..local.file_ops import read_jsonl, write_jsonl_atomic
from .ops import (
    CreateSession,
    FinishSession,
    Op,
    UpdateSpotMakes,
    merge_op,
    op_from_dict,
    op_to_dict,
    op_type,
)

logger = logging.getLogger(__name__)


class OperationQueue:
    """Ordered, durable list of ops awaiting sync.

    The in-memory list always mirrors what was last persisted: a mutation
    is written to disk first and only becomes visible once the write
    succeeds. A failed write raises StorageIOError and leaves the queue
    exactly as it was.

    Example:
        >>> queue = await OperationQueue.open(data_dir / "sync_queue.jsonl")
        >>> await queue.enqueue(UpdateSpotMakes("spot-1", 7))
        >>> queue.pending_count()
        1
    """

    def __init__(self, queue_path: Path, ops: list[Op] | None = None):
        """Initialize the queue.

        Prefer :meth:`open`, which loads the persisted ops.

        Args:
            queue_path: Path to the queue file
            ops: Already loaded ops
        """
        self.queue_path = queue_path
        self._ops: list[Op] = list(ops or [])
        self._lock = asyncio.Lock()

    @classmethod
    async def open(cls, queue_path: Path) -> OperationQueue:
        """Load the queue from disk.

        A missing file is an empty queue. A corrupt file is also treated
        as empty so the app can always start.
        """
        try:
            rows = await read_jsonl(queue_path)
            ops = [op_from_dict(row) for row in rows]
        except StorageIOError:
            logger.warning(f"Could not read sync queue {queue_path}; starting empty", exc_info=True)
            ops = []
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning(f"Sync queue {queue_path} is malformed; starting empty")
            ops = []

        if ops:
            logger.info(f"Loaded {len(ops)} pending ops from {queue_path}")
        return cls(queue_path, ops)

    async def enqueue(self, op: Op) -> None:
        """Add an op, applying the deduplication rule for its kind.

        Raises:
            StorageIOError: If the queue cannot be persisted
        """
        async with self._lock:
            updated = merge_op(self._ops, op)
            await self._persist(updated)
            self._ops = updated
        logger.debug(f"Enqueued {op_type(op)}; {len(self._ops)} pending")

    def read_all(self) -> list[Op]:
        """Current ops, oldest first. The returned list is a copy."""
        return list(self._ops)

    def pending_count(self) -> int:
        """Number of ops waiting to be synced. No I/O."""
        return len(self._ops)

    def pending_for_session(self, session_id: str) -> list[Op]:
        """Ops that touch the given session, in queue order.

        Makes updates are matched through the position attempts of a
        queued CreateSession; updates for sessions created online carry
        no session id and are not returned.
        """
        owners = {
            attempt.id: op.session_id
            for op in self._ops
            if isinstance(op, CreateSession)
            for attempt in op.position_attempts
        }
        matched: list[Op] = []
        for op in self._ops:
            if isinstance(op, CreateSession | FinishSession):
                if op.session_id == session_id:
                    matched.append(op)
            elif isinstance(op, UpdateSpotMakes):
                if owners.get(op.position_attempt_id) == session_id:
                    matched.append(op)
        return matched

    def has_pending_makes(self, position_attempt_id: str) -> bool:
        """Whether a makes update for this attempt is still queued."""
        return any(
            isinstance(op, UpdateSpotMakes) and op.position_attempt_id == position_attempt_id
            for op in self._ops
        )

    async def replace_with(self, ops: list[Op]) -> None:
        """Atomically overwrite the queue.

        Raises:
            StorageIOError: If the queue cannot be persisted
        """
        async with self._lock:
            updated = list(ops)
            await self._persist(updated)
            self._ops = updated

    async def settle(self, drained: list[Op], failed: list[Op]) -> None:
        """Rewrite the queue at the end of a drain.

        Keeps the ops that failed, followed by every op enqueued while the
        drain was running. Ops are matched by identity against the
        ``drained`` snapshot; an in-place dedup replacement is a new
        object and therefore counts as enqueued during the drain. Later
        ops are merged through the normal dedup rules so a newer makes
        value still replaces a failed older one.
        """
        async with self._lock:
            drained_ids = {id(op) for op in drained}
            updated = list(failed)
            for op in self._ops:
                if id(op) not in drained_ids:
                    updated = merge_op(updated, op)
            await self._persist(updated)
            self._ops = updated

    async def clear(self) -> int:
        """Drop all pending ops.

        Returns:
            Number of ops removed
        """
        async with self._lock:
            count = len(self._ops)
            await self._persist([])
            self._ops = []
        return count

    async def _persist(self, ops: list[Op]) -> None:
        await write_jsonl_atomic(self.queue_path, [op_to_dict(op) for op in ops])
