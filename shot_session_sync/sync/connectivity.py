"""
Connectivity tracking and reconnect-triggered draining.

The platform reports network status; the monitor keeps the last known
tri-state value and notifies listeners when it changes. ``UNKNOWN``
(the state before the first report) is never treated as online.

:class:`DrainTrigger` starts exactly one drain for each transition from
offline back to online.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Callable
from enum import Enum

from .engine import DrainEngine

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[["ConnectivityState", "ConnectivityState"], None]


class ConnectivityState(Enum):
    """Network status as last reported by the platform."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class ConnectivityMonitor:
    """Holds the current connectivity state and fans out changes.

    Listeners are called synchronously with ``(previous, current)`` and
    only when the state actually changes, so repeated reports of the same
    state are ignored.
    """

    def __init__(
        self,
        probe_host: str = "supabase.co",
        probe_timeout: float = 5.0,
        initial: ConnectivityState = ConnectivityState.UNKNOWN,
    ):
        """Initialize the monitor.

        Args:
            probe_host: Host resolved by :meth:`probe`
            probe_timeout: Seconds before a probe counts as offline
            initial: Starting state
        """
        self.probe_host = probe_host
        self.probe_timeout = probe_timeout
        self._state = initial
        self._listeners: list[ConnectivityListener] = []
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        """True only when connectivity is confirmed."""
        return self._state == ConnectivityState.ONLINE

    def add_listener(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register a change listener.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def set_state(self, state: ConnectivityState) -> None:
        """Record a status report from the platform."""
        previous = self._state
        if state == previous:
            return

        self._state = state
        logger.info(f"Connectivity changed: {previous.value} -> {state.value}")
        for listener in list(self._listeners):
            try:
                listener(previous, state)
            except Exception:
                logger.exception("Connectivity listener failed")

    def report(self, is_connected: bool | None, is_reachable: bool | None = None) -> None:
        """Record a raw platform report.

        ``is_connected=None`` means the platform has not decided yet. A
        network that is connected but explicitly unreachable is offline.
        """
        if is_connected is None:
            self.set_state(ConnectivityState.UNKNOWN)
        elif is_connected and is_reachable is not False:
            self.set_state(ConnectivityState.ONLINE)
        else:
            self.set_state(ConnectivityState.OFFLINE)

    async def probe(self) -> ConnectivityState:
        """Check connectivity by resolving the probe host.

        Returns:
            The new state (ONLINE or OFFLINE)
        """
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.getaddrinfo(self.probe_host, 443, type=socket.SOCK_STREAM),
                timeout=self.probe_timeout,
            )
            state = ConnectivityState.ONLINE
        except (OSError, TimeoutError):
            state = ConnectivityState.OFFLINE

        self.set_state(state)
        return state

    async def start_polling(self, interval: float = 30.0) -> None:
        """Probe periodically in the background.

        For hosts without a platform network signal.
        """
        if self._poll_task is not None:
            return

        async def poll_loop() -> None:
            while True:
                await self.probe()
                await asyncio.sleep(interval)

        self._poll_task = asyncio.create_task(poll_loop())

    async def stop_polling(self) -> None:
        """Stop background probing."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None


class DrainTrigger:
    """Runs one drain per offline-to-online transition.

    ``UNKNOWN`` in between does not count as a transition of its own:
    OFFLINE -> UNKNOWN -> ONLINE still triggers once, while
    UNKNOWN -> ONLINE at startup does not.
    """

    def __init__(self, monitor: ConnectivityMonitor, engine: DrainEngine):
        """Subscribe to ``monitor``.

        Must be created on the event loop that runs the drains; reports
        made from other threads are handed over to that loop.
        """
        self.monitor = monitor
        self.engine = engine
        self._loop = asyncio.get_running_loop()
        self._last_known = (
            monitor.state if monitor.state != ConnectivityState.UNKNOWN else None
        )
        self._task: asyncio.Task[int] | None = None
        self._remove_listener = monitor.add_listener(self._on_change)

    @property
    def pending_task(self) -> asyncio.Task[int] | None:
        return self._task

    def _on_change(self, previous: ConnectivityState, current: ConnectivityState) -> None:
        if current == ConnectivityState.UNKNOWN:
            return

        was_offline = self._last_known == ConnectivityState.OFFLINE
        self._last_known = current
        if current != ConnectivityState.ONLINE or not was_offline:
            return

        logger.info("Back online; draining pending ops")
        try:
            on_loop = asyncio.get_running_loop() is self._loop
        except RuntimeError:
            on_loop = False
        if on_loop:
            self._start_drain()
        else:
            self._loop.call_soon_threadsafe(self._start_drain)

    def _start_drain(self) -> None:
        self._task = self._loop.create_task(self.engine.drain())
        self._task.add_done_callback(self._log_outcome)

    @staticmethod
    def _log_outcome(task: asyncio.Task[int]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Reconnect drain failed: {error}")
        else:
            logger.info(f"Reconnect drain synced {task.result()} ops")

    async def wait_idle(self) -> None:
        """Wait for the drain started by the last transition, if any."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def close(self) -> None:
        """Stop reacting to connectivity changes."""
        self._remove_listener()
