"""Supabase Realtime change channel over a Phoenix websocket."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
import websockets
from websockets.exceptions import ConnectionClosed

from esports_hub.services.backend.base import ChangeEvent, ChangeFeed

logger = structlog.get_logger()

PROTOCOL_VERSION = "1.0.0"


def parse_message(message: dict[str, Any], topic: str, table: str) -> ChangeEvent | None:
    """Turn one decoded socket message into a change event.

    Only ``postgres_changes`` messages on our topic count; replies,
    presence and system messages yield None.

    Args:
        message: Decoded Phoenix message.
        topic: Channel topic we joined.
        table: Table the channel watches, used when the payload omits it.

    Returns:
        ChangeEvent or None.
    """
    if message.get("topic") != topic:
        return None

    event = message.get("event")
    payload = message.get("payload") or {}
    if event == "postgres_changes":
        data = payload.get("data") or {}
        return ChangeEvent(
            table=data.get("table") or table,
            event_type=data.get("type") or "*",
        )
    if event == "phx_reply" and payload.get("status") == "error":
        logger.warning("realtime_join_failed", topic=topic, response=payload.get("response"))
    elif event == "system":
        logger.debug("realtime_system", topic=topic, status=payload.get("status"))
    return None


class RealtimeChannel(ChangeFeed):
    """Change feed for one table, fed by the realtime websocket.

    Subscribes to insert, update and delete on ``<schema>.<table>`` with no
    row filter. The socket is kept alive with heartbeats until ``close``.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        table: str,
        access_token: str | None = None,
        heartbeat_seconds: float = 25.0,
        schema: str = "public",
        connect: Callable[[str], Awaitable[Any]] = websockets.connect,
    ) -> None:
        super().__init__(table)
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.access_token = access_token
        self.heartbeat_seconds = heartbeat_seconds
        self.schema = schema
        self.topic = f"realtime:{table}"
        self._connect = connect
        self._refs = itertools.count(1)
        self._join_ref: str | None = None
        self._socket: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._heartbeat: asyncio.Task[None] | None = None
        self._shut_down = False

    @property
    def socket_url(self) -> str:
        base = self.url.replace("https://", "wss://", 1).replace("http://", "ws://", 1)
        return f"{base}/realtime/v1/websocket?apikey={self.anon_key}&vsn={PROTOCOL_VERSION}"

    def join_message(self) -> dict[str, Any]:
        """Build the ``phx_join`` message for this channel."""
        self._join_ref = str(next(self._refs))
        payload: dict[str, Any] = {
            "config": {
                "broadcast": {"self": False},
                "presence": {"key": ""},
                "postgres_changes": [
                    {"event": "*", "schema": self.schema, "table": self.table}
                ],
            },
        }
        if self.access_token:
            payload["access_token"] = self.access_token
        return {
            "topic": self.topic,
            "event": "phx_join",
            "payload": payload,
            "ref": self._join_ref,
            "join_ref": self._join_ref,
        }

    async def open(self) -> None:
        """Connect, join the channel and start the reader and heartbeat tasks."""
        self._socket = await self._connect(self.socket_url)
        await self._send(self.join_message())
        self._reader = asyncio.create_task(self._read_loop())
        self._heartbeat = asyncio.create_task(self._heartbeat_loop())
        logger.info("realtime_subscribed", topic=self.topic)

    async def _send(self, message: dict[str, Any]) -> None:
        await self._socket.send(json.dumps(message))

    async def _read_loop(self) -> None:
        try:
            async for raw in self._socket:
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.warning("realtime_bad_message", topic=self.topic)
                    continue
                event = parse_message(message, self.topic, self.table)
                if event is not None:
                    self.publish(event)
        except ConnectionClosed as e:
            if not self.closed:
                logger.warning("realtime_disconnected", topic=self.topic, reason=str(e))
        # The feed ends with the socket; the next mount re-subscribes
        await ChangeFeed.close(self)

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            try:
                await self._send(
                    {
                        "topic": "phoenix",
                        "event": "heartbeat",
                        "payload": {},
                        "ref": str(next(self._refs)),
                    }
                )
            except ConnectionClosed:
                return

    async def close(self) -> None:
        """Leave the channel and close the socket."""
        if self._shut_down:
            return
        self._shut_down = True
        await super().close()
        if self._heartbeat is not None:
            self._heartbeat.cancel()
        if self._socket is not None:
            with contextlib.suppress(ConnectionClosed):
                await self._send(
                    {
                        "topic": self.topic,
                        "event": "phx_leave",
                        "payload": {},
                        "ref": str(next(self._refs)),
                        "join_ref": self._join_ref,
                    }
                )
            await self._socket.close()
        if self._reader is not None:
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
        logger.info("realtime_unsubscribed", topic=self.topic)
