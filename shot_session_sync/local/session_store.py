"""
Local session snapshots for offline use.

Each session that was created or modified without connectivity is kept
as one JSON file under ``<base_dir>/sessions/<session_id>.json``. The file
holds the full snapshot (session header plus ordered position attempts)
and is rewritten in full on every change.

The store is plain keyed persistence: it knows nothing about the
operation queue. Callers that mutate a snapshot also enqueue the durable
operation that carries the same change to the remote store.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import replace
from pathlib import Path

from ..exceptions import SessionValidationError, StorageIOError
from ..models import PositionAttempt, Session, SessionSnapshot, SessionStatus
from .file_ops import list_files, read_json, remove_file, write_json_atomic

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
SNAPSHOT_SUFFIX = ".json"


def validate_session_id(session_id: str) -> None:
    """Reject ids that cannot be used safely as file names.

    Raises:
        SessionValidationError: If the id is empty or contains path characters
    """
    if not session_id or not SESSION_ID_PATTERN.match(session_id):
        raise SessionValidationError(f"Invalid session_id: {session_id!r}", field="session_id")


class LocalSessionStore:
    """Keyed persistence of session snapshots.

    Example:
        >>> store = LocalSessionStore(Path("~/.shot-sync").expanduser())
        >>> await store.save(session, attempts)
        >>> snapshot = await store.load(session.id)
    """

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self.sessions_dir = base_dir / "sessions"

    def _snapshot_path(self, session_id: str) -> Path:
        validate_session_id(session_id)
        return self.sessions_dir / f"{session_id}{SNAPSHOT_SUFFIX}"

    async def save(self, session: Session, position_attempts: list[PositionAttempt]) -> None:
        """Persist a snapshot, overwriting any previous one for the same id."""
        snapshot = SessionSnapshot(session=session, position_attempts=list(position_attempts))
        await self._write(snapshot)

    async def load(self, session_id: str, *, fallback: bool = False) -> SessionSnapshot | None:
        """Load the snapshot for a session.

        Args:
            session_id: Session to load
            fallback: Set when the local copy is only a fallback for a
                failed remote read; I/O errors then report "no snapshot"
                instead of raising.

        Returns:
            The snapshot, or None if no usable local copy exists

        Raises:
            StorageIOError: If the file cannot be read and fallback is False
        """
        path = self._snapshot_path(session_id)
        try:
            data = await read_json(path)
        except StorageIOError:
            if not fallback:
                raise
            logger.warning(f"Could not read local snapshot for {session_id}", exc_info=True)
            return None
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed local snapshot: {path}")
            return None

        if data is None:
            return None

        try:
            return SessionSnapshot.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring malformed local snapshot: {path}")
            return None

    async def update_makes(self, session_id: str, position_attempt_id: str, makes: int) -> None:
        """Set the makes count of one position attempt. No-op if the session is absent."""
        snapshot = await self.load(session_id)
        if snapshot is None:
            logger.debug(f"No local snapshot for {session_id}; skipping makes update")
            return

        snapshot.position_attempts = [
            replace(attempt, makes=makes) if attempt.id == position_attempt_id else attempt
            for attempt in snapshot.position_attempts
        ]
        await self._write(snapshot)

    async def finish(self, session_id: str) -> None:
        """Mark a session DONE. No-op if the session is absent."""
        snapshot = await self.load(session_id)
        if snapshot is None:
            logger.debug(f"No local snapshot for {session_id}; skipping finish")
            return

        snapshot.session = replace(snapshot.session, status=SessionStatus.DONE)
        await self._write(snapshot)

    async def delete(self, session_id: str) -> None:
        """Remove a snapshot. Deleting an absent id is not an error."""
        removed = await remove_file(self._snapshot_path(session_id))
        if removed:
            logger.debug(f"Deleted local snapshot for {session_id}")

    async def list_session_ids(self) -> list[str]:
        """Ids of all sessions that currently have a local snapshot."""
        paths = await list_files(self.sessions_dir, SNAPSHOT_SUFFIX)
        return [p.name[: -len(SNAPSHOT_SUFFIX)] for p in paths]

    async def _write(self, snapshot: SessionSnapshot) -> None:
        await write_json_atomic(self._snapshot_path(snapshot.session.id), snapshot.to_dict())
