"""Supabase (PostgREST) backend with async HTTP, retries on reads and error mapping."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from esports_hub.core.errors import RemoteError, RemoteTimeoutError, RemoteWriteConflict
from esports_hub.models import (
    Participant,
    PlayerStatistic,
    Tournament,
    TournamentDraft,
    utc_now,
)
from esports_hub.ranking import SortKey
from esports_hub.services.backend.base import (
    ChangeFeed,
    TournamentBackend,
    TournamentOrder,
)
from esports_hub.services.backend.realtime import RealtimeChannel

logger = structlog.get_logger()

_ORDER_CLAUSES: dict[str, str] = {
    "start_date": "start_date.asc",
    "created_at": "created_at.desc",
}

# Connection-level failures are safe to retry for reads only
_RETRYABLE = (httpx.ConnectError, httpx.RemoteProtocolError, httpx.ReadError)


def raise_for_error(response: httpx.Response) -> None:
    """Raise the matching RemoteError for a failed PostgREST response.

    PostgREST error bodies carry a Postgres SQLSTATE ``code`` and a
    ``message``. Integrity violations (class 23, or HTTP 409) become
    ``RemoteWriteConflict``; the message is passed through unchanged.

    Args:
        response: HTTP response from the REST endpoint.

    Raises:
        RemoteWriteConflict: On constraint violations.
        RemoteError: On any other non-success status.
    """
    if response.is_success:
        return

    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}

    message = body.get("message") or response.text or response.reason_phrase
    code = body.get("code")
    if response.status_code == httpx.codes.CONFLICT or (code and str(code).startswith("23")):
        raise RemoteWriteConflict(message, code=code)
    raise RemoteError(message, code=code or str(response.status_code))


class SupabaseBackend(TournamentBackend):
    """Async client for the hosted store's REST and realtime endpoints."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        access_token: str | None = None,
        timeout: float | None = 10.0,
        heartbeat_seconds: float = 25.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            url: Project URL.
            anon_key: Public anon key.
            access_token: Signed-in user's JWT; the anon key is used when absent.
            timeout: Per-request timeout in seconds, None to wait indefinitely.
            heartbeat_seconds: Realtime heartbeat interval.
            client: Optional preconfigured HTTP client (used by tests).
        """
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.access_token = access_token
        self.timeout = timeout
        self.heartbeat_seconds = heartbeat_seconds
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._channels: list[RealtimeChannel] = []

    @property
    def rest_url(self) -> str:
        return f"{self.url}/rest/v1"

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    # ==================== Transport ====================

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(_RETRYABLE),
        reraise=True,
    )
    async def _get(self, table: str, params: dict[str, str]) -> httpx.Response:
        return await self.client.get(
            f"{self.rest_url}/{table}", params=params, headers=self._headers()
        )

    async def _read(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        """Run a GET with retries and return the decoded rows."""
        params = {"select": "*", **params}
        try:
            response = await self._get(table, params)
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(f"read {table}", self.timeout) from e
        except httpx.TransportError as e:
            raise RemoteError(str(e) or type(e).__name__, code="network") from e
        raise_for_error(response)
        rows = response.json()
        logger.debug("rest_read", table=table, rows=len(rows))
        return rows

    async def _write(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run a single write. Writes are never retried."""
        logger.info("rest_write", method=method, table=table)
        try:
            response = await self.client.request(
                method,
                f"{self.rest_url}/{table}",
                params=params,
                json=json,
                headers=self._headers(prefer="return=representation"),
            )
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(f"{method} {table}", self.timeout) from e
        except httpx.TransportError as e:
            raise RemoteError(str(e) or type(e).__name__, code="network") from e
        raise_for_error(response)
        if not response.content:
            return []
        return response.json()

    # ==================== Queries ====================

    async def fetch_tournaments(self, order: TournamentOrder = "start_date") -> list[Tournament]:
        rows = await self._read("tournaments", {"order": _ORDER_CLAUSES[order]})
        return [Tournament.model_validate(row) for row in rows]

    async def fetch_participations(self, user_id: str) -> list[Participant]:
        rows = await self._read("tournament_participants", {"user_id": f"eq.{user_id}"})
        return [Participant.model_validate(row) for row in rows]

    async def fetch_leaderboard(self, sort_key: SortKey, limit: int) -> list[PlayerStatistic]:
        rows = await self._read(
            "profiles",
            {"order": f"{SortKey.parse(sort_key).value}.desc", "limit": str(limit)},
        )
        return [PlayerStatistic.model_validate(row) for row in rows]

    async def fetch_profile(self, user_id: str) -> PlayerStatistic | None:
        rows = await self._read("profiles", {"id": f"eq.{user_id}"})
        if not rows:
            return None
        return PlayerStatistic.model_validate(rows[0])

    # ==================== Mutations ====================

    async def insert_participant(self, tournament_id: str, user_id: str) -> Participant:
        rows = await self._write(
            "POST",
            "tournament_participants",
            json={"tournament_id": tournament_id, "user_id": user_id},
        )
        if rows:
            return Participant.model_validate(rows[0])
        return Participant(tournament_id=tournament_id, user_id=user_id)

    async def delete_participant(self, tournament_id: str, user_id: str) -> None:
        await self._write(
            "DELETE",
            "tournament_participants",
            params={"tournament_id": f"eq.{tournament_id}", "user_id": f"eq.{user_id}"},
        )

    async def insert_tournament(self, draft: TournamentDraft, created_by: str) -> Tournament:
        payload = {**draft.model_dump(mode="json"), "created_by": created_by}
        rows = await self._write("POST", "tournaments", json=payload)
        return Tournament.model_validate(rows[0])

    async def update_tournament(self, tournament_id: str, draft: TournamentDraft) -> Tournament:
        payload = {**draft.model_dump(mode="json"), "updated_at": utc_now().isoformat()}
        rows = await self._write(
            "PATCH", "tournaments", params={"id": f"eq.{tournament_id}"}, json=payload
        )
        if not rows:
            msg = f"Tournament {tournament_id} not found"
            raise RemoteWriteConflict(msg, code="not_found")
        return Tournament.model_validate(rows[0])

    async def delete_tournament(self, tournament_id: str) -> None:
        await self._write("DELETE", "tournaments", params={"id": f"eq.{tournament_id}"})

    # ==================== Realtime ====================

    async def subscribe(self, table: str) -> ChangeFeed:
        channel = RealtimeChannel(
            url=self.url,
            anon_key=self.anon_key,
            table=table,
            access_token=self.access_token,
            heartbeat_seconds=self.heartbeat_seconds,
        )
        await channel.open()
        self._channels = [c for c in self._channels if not c.closed]
        self._channels.append(channel)
        return channel

    async def close(self) -> None:
        """Close open channels and the HTTP client."""
        for channel in self._channels:
            await channel.close()
        self._channels.clear()
        await self.client.aclose()
