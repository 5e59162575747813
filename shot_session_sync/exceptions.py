"""
Errors raised by the sync core.

Everything derives from SessionStorageError, so the workflow can turn any
storage or remote failure into a reported result with one except clause.
Each error keeps its structured context in ``details`` for logging.
"""

from typing import Any


def _present(**fields: Any) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


class SessionStorageError(Exception):
    """Root of the sync error hierarchy."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SessionValidationError(SessionStorageError):
    """Input that cannot be stored, such as a session id with path characters."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, _present(field=field))
        self.field = field


class StorageIOError(SessionStorageError):
    """A local file operation (snapshot or queue) failed at the OS level."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        target = f": {path}" if path else ""
        super().__init__(
            f"Storage I/O error during {operation}{target}",
            _present(operation=operation, path=path, cause=str(cause) if cause else None),
        )
        self.operation = operation
        self.path = path
        self.cause = cause


class RemoteStoreError(SessionStorageError):
    """The remote backend answered with an error status."""

    def __init__(self, operation: str, status: int | None = None, body: str | None = None):
        status_text = f" with status {status}" if status is not None else ""
        super().__init__(
            f"Remote operation {operation} failed{status_text}",
            _present(operation=operation, status=status, body=body or None),
        )
        self.operation = operation
        self.status = status
        self.body = body


class StorageConnectionError(SessionStorageError):
    """The remote backend could not be reached at all."""

    def __init__(self, endpoint: str, cause: Exception | None = None):
        super().__init__(
            f"Could not reach {endpoint}",
            _present(endpoint=endpoint, cause=str(cause) if cause else None),
        )
        self.endpoint = endpoint
        self.cause = cause


class AuthenticationError(SessionStorageError):
    """Remote credentials are missing or were refused."""

    def __init__(self, endpoint: str, reason: str | None = None):
        super().__init__(
            f"Not authorized for {endpoint}" + (f": {reason}" if reason else ""),
            _present(endpoint=endpoint, reason=reason),
        )
        self.endpoint = endpoint
        self.reason = reason


class ConfigurationError(SessionStorageError):
    """A sync setting has an invalid value."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Invalid setting {key}: {reason}", {"key": key, "reason": reason})
        self.key = key
        self.reason = reason


class CircuitOpenError(SessionStorageError):
    """Remote calls are being rejected until the backend recovers."""
