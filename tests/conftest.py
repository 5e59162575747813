"""
Shared test configuration and fixtures.

Provides an in-memory remote store that records every call and can be
told to fail specific ops, plus factories for sessions and attempts.
"""

import logging
import tempfile
from collections.abc import AsyncIterator, Iterator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from shot_session_sync.exceptions import RemoteStoreError
from shot_session_sync.local import LocalSessionStore
from shot_session_sync.models import (
    PositionAttempt,
    Session,
    SessionSnapshot,
    SessionStatus,
    ShotType,
)
from shot_session_sync.remote.base import RemoteStore
from shot_session_sync.sync.connectivity import ConnectivityMonitor, ConnectivityState
from shot_session_sync.sync.queue import OperationQueue

logger = logging.getLogger(__name__)


class FakeRemoteStore(RemoteStore):
    """
    In-memory remote store for testing without a backend.

    Keeps sessions, attempts and finished workouts in dicts, records
    every call in order, and raises RemoteStoreError for any call whose
    key is listed in ``fail_keys`` (a session id, attempt id or workout id).
    """

    def __init__(self) -> None:
        self.sessions: dict[str, Session] = {}
        self.attempts: dict[str, PositionAttempt] = {}
        self.finished_workouts: set[str] = set()
        self.finished_at: dict[str, datetime] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_keys: set[str] = set()
        self.fail_everything = False
        self.closed = False

    def _check(self, operation: str, key: str) -> None:
        self.calls.append((operation, key))
        if self.fail_everything or key in self.fail_keys:
            raise RemoteStoreError(operation, status=503, body=f"forced failure for {key}")

    async def upsert_session(self, session: Session) -> None:
        self._check("upsert_session", session.id)
        self.sessions[session.id] = session

    async def upsert_position_attempts(self, position_attempts: list[PositionAttempt]) -> None:
        for attempt in position_attempts:
            self._check("upsert_position_attempt", attempt.id)
        for attempt in position_attempts:
            self.attempts[attempt.id] = attempt

    async def set_position_attempt_makes(self, position_attempt_id: str, makes: int) -> None:
        self._check("set_makes", position_attempt_id)
        attempt = self.attempts.get(position_attempt_id)
        if attempt is not None:
            attempt.makes = makes

    async def set_session_finished(self, session_id: str, finished_at: datetime) -> None:
        self._check("finish_session", session_id)
        session = self.sessions.get(session_id)
        if session is not None:
            session.status = SessionStatus.DONE
        self.finished_at[session_id] = finished_at

    async def set_workout_finished(self, workout_id: str) -> None:
        self._check("finish_workout", workout_id)
        self.finished_workouts.add(workout_id)

    async def fetch_session(self, session_id: str) -> SessionSnapshot | None:
        self._check("fetch_session", session_id)
        session = self.sessions.get(session_id)
        if session is None:
            return None
        attempts = sorted(
            (a for a in self.attempts.values() if a.session_id == session_id),
            key=lambda a: a.order_index,
        )
        return SessionSnapshot(session=session, position_attempts=attempts)

    async def close(self) -> None:
        self.closed = True


def make_session(session_id: str = "S1", **overrides) -> Session:
    """Build a session with sensible defaults."""
    fields = {
        "id": session_id,
        "user_id": "user-1",
        "kind": "TRIPLES",
        "title": "Morning threes",
        "default_target_attempts": 10,
        "started_at": datetime(2026, 3, 1, 9, 30, tzinfo=UTC),
        "status": SessionStatus.IN_PROGRESS,
        "workout_id": None,
    }
    fields.update(overrides)
    return Session(**fields)


def make_attempt(
    attempt_id: str = "A1",
    session_id: str = "S1",
    order_index: int = 0,
    **overrides,
) -> PositionAttempt:
    """Build a position attempt with sensible defaults."""
    fields = {
        "id": attempt_id,
        "session_id": session_id,
        "user_id": "user-1",
        "spot_key": f"3pt_l{order_index + 1}",
        "shot_type": ShotType.THREE_POINT,
        "target_attempts": 10,
        "attempts": 10,
        "makes": 0,
        "order_index": order_index,
    }
    fields.update(overrides)
    return PositionAttempt(**fields)


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def local_store(temp_dir: Path) -> LocalSessionStore:
    return LocalSessionStore(temp_dir)


@pytest.fixture
async def queue(temp_dir: Path) -> AsyncIterator[OperationQueue]:
    yield await OperationQueue.open(temp_dir / "sync_queue.jsonl")


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def monitor() -> ConnectivityMonitor:
    return ConnectivityMonitor(probe_host="localhost", initial=ConnectivityState.OFFLINE)
