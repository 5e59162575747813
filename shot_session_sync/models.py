"""
Data model for shot-tracking sessions.

A Session is one run of a player shooting from a set of court positions;
each position carries its own attempts/makes counters (a PositionAttempt).
Field names match the columns of the remote ``sessions`` and
``session_spots`` tables so the same dicts serve for local snapshots and
remote upserts.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SessionStatus(Enum):
    """Lifecycle status of a session. Only moves forward."""

    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class ShotType(Enum):
    """Shot value for a court position."""

    TWO_POINT = "2PT"
    THREE_POINT = "3PT"


def new_id() -> str:
    """Generate a globally unique identifier for locally created records."""
    return str(uuid.uuid4())


def _parse_datetime(value: datetime | str) -> datetime:
    return datetime.fromisoformat(value) if isinstance(value, str) else value


@dataclass
class Session:
    """Header of a shooting session."""

    id: str
    user_id: str
    kind: str
    title: str
    default_target_attempts: int
    started_at: datetime
    status: SessionStatus = SessionStatus.IN_PROGRESS
    workout_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "kind": self.kind,
            "title": self.title,
            "default_target_attempts": self.default_target_attempts,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "workout_id": self.workout_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            kind=data["kind"],
            title=data["title"],
            default_target_attempts=int(data["default_target_attempts"]),
            started_at=_parse_datetime(data["started_at"]),
            status=SessionStatus(data.get("status", SessionStatus.IN_PROGRESS.value)),
            workout_id=data.get("workout_id"),
        )


@dataclass
class PositionAttempt:
    """Attempts/makes counters for one court position within a session.

    ``0 <= makes <= attempts`` is the caller's responsibility; nothing in
    the store or the queue re-validates it.
    """

    id: str
    session_id: str
    user_id: str
    spot_key: str
    shot_type: ShotType
    target_attempts: int
    attempts: int
    makes: int
    order_index: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "spot_key": self.spot_key,
            "shot_type": self.shot_type.value,
            "target_attempts": self.target_attempts,
            "attempts": self.attempts,
            "makes": self.makes,
            "order_index": self.order_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PositionAttempt:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            user_id=data["user_id"],
            spot_key=data["spot_key"],
            shot_type=ShotType(data["shot_type"]),
            target_attempts=int(data["target_attempts"]),
            attempts=int(data["attempts"]),
            makes=int(data["makes"]),
            order_index=int(data["order_index"]),
        )


@dataclass
class SessionSnapshot:
    """A session together with its ordered position attempts."""

    session: Session
    position_attempts: list[PositionAttempt] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session": self.session.to_dict(),
            "spots": [attempt.to_dict() for attempt in self.position_attempts],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionSnapshot:
        return cls(
            session=Session.from_dict(data["session"]),
            position_attempts=[PositionAttempt.from_dict(s) for s in data.get("spots", [])],
        )


@dataclass
class SpotPlan:
    """A position the player intends to shoot from when starting a session."""

    spot_key: str
    shot_type: ShotType
    target_attempts: int | None = None
