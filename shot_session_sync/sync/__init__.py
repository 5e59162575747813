"""
Offline operation queue and replay.

Ops recorded while offline are persisted in an :class:`OperationQueue`
and replayed against the remote store by a :class:`DrainEngine`, either
on demand or through a :class:`DrainTrigger` when connectivity returns.
"""

from .connectivity import ConnectivityMonitor, ConnectivityState, DrainTrigger
from .engine import DrainEngine, DrainResult, DrainState
from .ops import (
    CreateSession,
    FinishSession,
    FinishWorkout,
    Op,
    UpdateSpotMakes,
    merge_op,
    op_from_dict,
    op_to_dict,
    op_type,
)
from .queue import OperationQueue

__all__ = [
    "ConnectivityMonitor",
    "ConnectivityState",
    "CreateSession",
    "DrainEngine",
    "DrainResult",
    "DrainState",
    "DrainTrigger",
    "FinishSession",
    "FinishWorkout",
    "Op",
    "OperationQueue",
    "UpdateSpotMakes",
    "merge_op",
    "op_from_dict",
    "op_to_dict",
    "op_type",
]
