"""Retry and circuit breaking for remote store calls.

Transient failures (timeouts, dropped connections, 408/429/5xx) are
retried with exponential backoff. A circuit breaker shared by all calls
of one remote store stops a drain against a dead backend from waiting
out the full retry schedule for every queued op.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from ..exceptions import CircuitOpenError, RemoteStoreError, StorageConnectionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Backoff schedule and the failures worth retrying."""

    max_retries: int = 3
    backoff_base: float = 0.5  # seconds
    backoff_max: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_status_codes: tuple[int, ...] = (408, 429, 500, 502, 503, 504)
    retryable_exceptions: tuple[type[Exception], ...] = (
        StorageConnectionError,
        TimeoutError,
    )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based attempt failed."""
        return min(self.backoff_base * self.backoff_multiplier**attempt, self.backoff_max)

    def is_retryable(self, exc: Exception) -> bool:
        if isinstance(exc, self.retryable_exceptions):
            return True
        return isinstance(exc, RemoteStoreError) and exc.status in self.retryable_status_codes


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Fails calls fast after repeated transient failures.

    ``failure_threshold`` consecutive failures open the circuit. Once
    ``reset_timeout`` seconds have passed it turns half-open and lets the
    next call through; that call's outcome closes or re-opens it.
    """

    failure_threshold: int = 5
    reset_timeout: float = 30.0

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False, repr=False)
    _consecutive_failures: int = field(default=0, init=False, repr=False)
    _opened_at: float = field(default=0.0, init=False, repr=False)

    @property
    def state(self) -> CircuitState:
        if (
            self._state == CircuitState.OPEN
            and time.monotonic() - self._opened_at >= self.reset_timeout
        ):
            self._state = CircuitState.HALF_OPEN
            logger.info("Remote store circuit half-open; letting one call through")
        return self._state

    def allow_request(self) -> bool:
        return self.state != CircuitState.OPEN

    def before_call(self, context: str = "") -> None:
        """Raise CircuitOpenError if calls are currently rejected."""
        if not self.allow_request():
            suffix = f" ({context})" if context else ""
            raise CircuitOpenError(f"Remote store unavailable, circuit open{suffix}")

    def record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info("Remote store circuit closed again")
        self._consecutive_failures = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        self._opened_at = time.monotonic()
        if self._consecutive_failures < self.failure_threshold:
            return
        if self._state != CircuitState.OPEN:
            logger.warning(
                f"Remote store circuit open after {self._consecutive_failures} failures; "
                f"retrying in {self.reset_timeout}s"
            )
        self._state = CircuitState.OPEN


async def retry_with_backoff(
    fn: Callable[..., Coroutine[Any, Any, T]],
    *args: Any,
    config: RetryConfig | None = None,
    circuit: CircuitBreaker | None = None,
    context_msg: str = "",
    **kwargs: Any,
) -> T:
    """Await ``fn(*args, **kwargs)``, retrying transient failures.

    Args:
        fn: Coroutine function to call
        config: Backoff schedule (defaults to RetryConfig())
        circuit: Breaker consulted before every attempt, if given
        context_msg: Label for log lines, e.g. "PATCH sessions"

    Returns:
        Whatever fn returns

    Raises:
        CircuitOpenError: If the circuit rejects an attempt
        Exception: The failure itself when it is permanent or retries
            are used up
    """
    cfg = config or RetryConfig()
    attempts = cfg.max_retries + 1
    label = context_msg or getattr(fn, "__name__", "remote call")

    attempt = 0
    while True:
        if circuit is not None:
            circuit.before_call(context_msg)

        try:
            result = await fn(*args, **kwargs)
        except Exception as exc:
            transient = cfg.is_retryable(exc)
            # Permanent errors (bad payload, auth) say nothing about backend health.
            if transient and circuit is not None:
                circuit.record_failure()
            if not transient or attempt + 1 >= attempts:
                logger.error(f"{label} failed after {attempt + 1}/{attempts} attempts: {exc}")
                raise

            delay = cfg.delay_for(attempt)
            logger.warning(
                f"{label} failed (attempt {attempt + 1}/{attempts}), retrying in {delay:.1f}s: {exc}"
            )
            await asyncio.sleep(delay)
            attempt += 1
            continue

        if attempt:
            logger.info(f"{label} succeeded on attempt {attempt + 1}/{attempts}")
        if circuit is not None:
            circuit.record_success()
        return result
