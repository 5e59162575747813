"""
Queued mutation intents.

An ``Op`` is a change recorded while offline that still has to reach
the remote store. There are exactly four kinds; every place that
dispatches on them ends in ``assert_never`` so a new kind cannot be
added without handling it everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, assert_never

from ..models import PositionAttempt, Session


@dataclass(frozen=True)
class CreateSession:
    """Materialize a full session (header plus attempts) remotely."""

    session: Session
    position_attempts: list[PositionAttempt] = field(default_factory=list)

    @property
    def session_id(self) -> str:
        return self.session.id


@dataclass(frozen=True)
class UpdateSpotMakes:
    """Set the makes count of one position attempt."""

    position_attempt_id: str
    makes: int


@dataclass(frozen=True)
class FinishSession:
    """Mark a session done."""

    session_id: str
    finished_at: datetime


@dataclass(frozen=True)
class FinishWorkout:
    """Mark a parent workout done."""

    workout_id: str


Op = CreateSession | UpdateSpotMakes | FinishSession | FinishWorkout

# Wire tags, kept stable across releases since they are persisted.
CREATE_SESSION = "CREATE_SESSION"
UPDATE_SPOT = "UPDATE_SPOT"
FINISH_SESSION = "FINISH_SESSION"
FINISH_WORKOUT = "FINISH_WORKOUT"


def op_type(op: Op) -> str:
    """Return the persisted type tag of an op."""
    if isinstance(op, CreateSession):
        return CREATE_SESSION
    elif isinstance(op, UpdateSpotMakes):
        return UPDATE_SPOT
    elif isinstance(op, FinishSession):
        return FINISH_SESSION
    elif isinstance(op, FinishWorkout):
        return FINISH_WORKOUT
    else:
        assert_never(op)


def op_to_dict(op: Op) -> dict[str, Any]:
    """Convert an op to a dictionary for serialization."""
    if isinstance(op, CreateSession):
        return {
            "type": CREATE_SESSION,
            "session": op.session.to_dict(),
            "spots": [attempt.to_dict() for attempt in op.position_attempts],
        }
    elif isinstance(op, UpdateSpotMakes):
        return {"type": UPDATE_SPOT, "spotId": op.position_attempt_id, "makes": op.makes}
    elif isinstance(op, FinishSession):
        return {
            "type": FINISH_SESSION,
            "sessionId": op.session_id,
            "finishedAt": op.finished_at.isoformat(),
        }
    elif isinstance(op, FinishWorkout):
        return {"type": FINISH_WORKOUT, "workoutId": op.workout_id}
    else:
        assert_never(op)


def op_from_dict(data: dict[str, Any]) -> Op:
    """Create an op from its dictionary form.

    Raises:
        ValueError: If the type tag is unknown
        KeyError: If a required field is missing
    """
    kind = data.get("type")
    if kind == CREATE_SESSION:
        return CreateSession(
            session=Session.from_dict(data["session"]),
            position_attempts=[PositionAttempt.from_dict(s) for s in data.get("spots", [])],
        )
    if kind == UPDATE_SPOT:
        return UpdateSpotMakes(position_attempt_id=data["spotId"], makes=int(data["makes"]))
    if kind == FINISH_SESSION:
        return FinishSession(
            session_id=data["sessionId"],
            finished_at=datetime.fromisoformat(data["finishedAt"]),
        )
    if kind == FINISH_WORKOUT:
        return FinishWorkout(workout_id=data["workoutId"])
    raise ValueError(f"Unknown op type: {kind!r}")


def merge_op(ops: list[Op], op: Op) -> list[Op]:
    """Return ``ops`` with ``op`` added under the deduplication rules.

    - UpdateSpotMakes: at most one per position attempt. A newer value
      replaces the older entry in its original slot.
    - FinishSession / FinishWorkout: at most one per session / workout.
      A duplicate is dropped.
    - CreateSession: always appended.

    The input list is not modified.
    """
    merged = list(ops)
    if isinstance(op, CreateSession):
        merged.append(op)
    elif isinstance(op, UpdateSpotMakes):
        for index, existing in enumerate(merged):
            if (
                isinstance(existing, UpdateSpotMakes)
                and existing.position_attempt_id == op.position_attempt_id
            ):
                merged[index] = op
                break
        else:
            merged.append(op)
    elif isinstance(op, FinishSession):
        if not any(
            isinstance(existing, FinishSession) and existing.session_id == op.session_id
            for existing in merged
        ):
            merged.append(op)
    elif isinstance(op, FinishWorkout):
        if not any(
            isinstance(existing, FinishWorkout) and existing.workout_id == op.workout_id
            for existing in merged
        ):
            merged.append(op)
    else:
        assert_never(op)
    return merged
