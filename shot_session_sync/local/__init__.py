"""
Local persistence for offline sessions.

Snapshots live as JSON files on the device and are written atomically.
"""

from .session_store import LocalSessionStore, validate_session_id

__all__ = [
    "LocalSessionStore",
    "validate_session_id",
]
