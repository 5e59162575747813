"""
Supabase (PostgREST) remote store.

Talks to the hosted relational backend over HTTPS using aiohttp:
- Upserts: POST with ``on_conflict=id`` and ``resolution=merge-duplicates``
- Field sets: PATCH filtered by ``id=eq.<id>``
- Reads: GET with an explicit column list

Transient failures (429, 5xx, dropped connections) are retried with
exponential backoff; a shared circuit breaker rejects calls fast while
the backend is down.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

import aiohttp

from ..config import SyncConfig
from ..exceptions import RemoteStoreError, StorageConnectionError
from ..models import PositionAttempt, Session, SessionSnapshot, SessionStatus
from .base import RemoteStore
from .resilience import CircuitBreaker, RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)

# Table names
SESSIONS_TABLE = "sessions"
SPOTS_TABLE = "session_spots"
WORKOUTS_TABLE = "workouts"

SESSION_COLUMNS = (
    "id,user_id,kind,title,default_target_attempts,status,started_at,workout_id"
)
SPOT_COLUMNS = (
    "id,session_id,user_id,spot_key,shot_type,target_attempts,attempts,makes,order_index"
)

PREFER_UPSERT = "resolution=merge-duplicates,return=minimal"
PREFER_MINIMAL = "return=minimal"


class SupabaseRemoteStore(RemoteStore):
    """Remote store backed by Supabase's REST interface.

    Example:
        >>> config = SyncConfig.from_environment()
        >>> async with SupabaseRemoteStore(config) as remote:
        ...     await remote.set_workout_finished("workout-123")
    """

    def __init__(
        self,
        config: SyncConfig,
        http: aiohttp.ClientSession | None = None,
        retry_config: RetryConfig | None = None,
        circuit: CircuitBreaker | None = None,
    ):
        """Initialize the remote store.

        Args:
            config: Sync configuration with the backend URL and key
            http: Optional shared client session (not closed by this store)
            retry_config: Retry policy (defaults to config.max_retries)
            circuit: Circuit breaker shared across calls
        """
        self.base_url, self.api_key = config.require_remote()
        self.access_token = config.access_token or self.api_key
        self.timeout = aiohttp.ClientTimeout(total=config.request_timeout)
        self.retry_config = retry_config or RetryConfig(max_retries=config.max_retries)
        self.circuit = circuit or CircuitBreaker()
        self._http = http
        self._owns_http = http is None

    @property
    def rest_url(self) -> str:
        return f"{self.base_url}/rest/v1"

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _client(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_http = True
        return self._http

    async def close(self) -> None:
        """Close the HTTP session if this store created it."""
        if self._http is not None and self._owns_http and not self._http.closed:
            await self._http.close()
        self._http = None

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Issue one REST request and decode the JSON body, if any."""
        url = f"{self.rest_url}/{table}"
        try:
            async with self._client().request(
                method,
                url,
                params=params,
                json=payload,
                headers=self._headers(prefer),
            ) as response:
                body = await response.text()
                if response.status >= 400:
                    raise RemoteStoreError(f"{method} {table}", status=response.status, body=body)
                if not body:
                    return None
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StorageConnectionError(url, e) from e

    async def _call(self, method: str, table: str, **kwargs: Any) -> Any:
        return await retry_with_backoff(
            self._request,
            method,
            table,
            config=self.retry_config,
            circuit=self.circuit,
            context_msg=f"{method} {table}",
            **kwargs,
        )

    async def upsert_session(self, session: Session) -> None:
        await self._call(
            "POST",
            SESSIONS_TABLE,
            params={"on_conflict": "id"},
            payload=[session.to_dict()],
            prefer=PREFER_UPSERT,
        )
        logger.debug(f"Upserted session {session.id}")

    async def upsert_position_attempts(self, position_attempts: list[PositionAttempt]) -> None:
        if not position_attempts:
            return
        await self._call(
            "POST",
            SPOTS_TABLE,
            params={"on_conflict": "id"},
            payload=[attempt.to_dict() for attempt in position_attempts],
            prefer=PREFER_UPSERT,
        )
        logger.debug(f"Upserted {len(position_attempts)} position attempts")

    async def set_position_attempt_makes(self, position_attempt_id: str, makes: int) -> None:
        await self._call(
            "PATCH",
            SPOTS_TABLE,
            params={"id": f"eq.{position_attempt_id}"},
            payload={"makes": makes},
            prefer=PREFER_MINIMAL,
        )

    async def set_session_finished(self, session_id: str, finished_at: datetime) -> None:
        await self._call(
            "PATCH",
            SESSIONS_TABLE,
            params={"id": f"eq.{session_id}"},
            payload={"status": SessionStatus.DONE.value, "finished_at": finished_at.isoformat()},
            prefer=PREFER_MINIMAL,
        )

    async def set_workout_finished(self, workout_id: str) -> None:
        await self._call(
            "PATCH",
            WORKOUTS_TABLE,
            params={"id": f"eq.{workout_id}"},
            payload={"status": SessionStatus.DONE.value},
            prefer=PREFER_MINIMAL,
        )

    async def fetch_session(self, session_id: str) -> SessionSnapshot | None:
        rows = await self._call(
            "GET",
            SESSIONS_TABLE,
            params={"id": f"eq.{session_id}", "select": SESSION_COLUMNS},
        )
        if not rows:
            return None

        spots = await self._call(
            "GET",
            SPOTS_TABLE,
            params={
                "session_id": f"eq.{session_id}",
                "select": SPOT_COLUMNS,
                "order": "order_index.asc",
            },
        )
        return SessionSnapshot(
            session=Session.from_dict(rows[0]),
            position_attempts=[PositionAttempt.from_dict(row) for row in spots or []],
        )
