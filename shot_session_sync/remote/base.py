"""
Abstract remote store interface.

The remote store is the system of record. The drain engine replays queued
ops against it, possibly more than once after a crash, so every write
here must be idempotent: creates are upserts by id and updates are
unconditional field sets.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from ..models import PositionAttempt, Session, SessionSnapshot


class RemoteStore(ABC):
    """Contract every remote backend must implement.

    Methods raise on failure (RemoteStoreError, StorageConnectionError or
    CircuitOpenError for the bundled backend); they never report failure
    through a return value.
    """

    @abstractmethod
    async def upsert_session(self, session: Session) -> None:
        """Create or replace a session by id, preserving the given id."""
        ...

    @abstractmethod
    async def upsert_position_attempts(self, position_attempts: list[PositionAttempt]) -> None:
        """Create or replace position attempts by id."""
        ...

    @abstractmethod
    async def set_position_attempt_makes(self, position_attempt_id: str, makes: int) -> None:
        """Set the makes count of a position attempt. Last write wins."""
        ...

    @abstractmethod
    async def set_session_finished(self, session_id: str, finished_at: datetime) -> None:
        """Mark a session DONE with its finish time."""
        ...

    @abstractmethod
    async def set_workout_finished(self, workout_id: str) -> None:
        """Mark a workout DONE."""
        ...

    @abstractmethod
    async def fetch_session(self, session_id: str) -> SessionSnapshot | None:
        """Read a session and its attempts, or None if the remote has no such session."""
        ...

    async def create_session(
        self, session: Session, position_attempts: list[PositionAttempt]
    ) -> None:
        """Materialize a full session. The header is written before its attempts."""
        await self.upsert_session(session)
        if position_attempts:
            await self.upsert_position_attempts(position_attempts)

    async def close(self) -> None:
        """Release any held connections."""
        return None

    async def __aenter__(self) -> RemoteStore:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
