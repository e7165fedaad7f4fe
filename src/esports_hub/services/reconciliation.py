"""Tournament list view and its realtime reconciliation protocol."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from esports_hub.core.errors import RemoteError
from esports_hub.models import Tournament

if TYPE_CHECKING:
    from esports_hub.services.backend import ChangeFeed, TournamentBackend, TournamentOrder

logger = structlog.get_logger()

TOURNAMENTS_TABLE = "tournaments"


class TournamentView:
    """Last fetched tournament list, in display order.

    Written only by ``refresh``. A fetch result is applied only if it was
    issued after the result currently shown, so overlapping fetches never
    move the view backwards.
    """

    def __init__(self, backend: TournamentBackend, order: TournamentOrder = "start_date") -> None:
        self.backend = backend
        self.order = order
        self.tournaments: list[Tournament] = []
        self.loaded = False
        self.error: str | None = None
        self.fetch_count = 0
        self._issued = 0
        self._applied = 0

    def get(self, tournament_id: str) -> Tournament | None:
        return next((t for t in self.tournaments if t.id == tournament_id), None)

    async def refresh(self, background: bool = False) -> bool:
        """Re-fetch the full tournament collection.

        Args:
            background: True when triggered by a change notification.

        Returns:
            True if the view was updated.
        """
        self._issued += 1
        token = self._issued
        try:
            tournaments = await self.backend.fetch_tournaments(self.order)
        except RemoteError as e:
            # Keep the last-known list; only a failed first load is shown
            logger.warning(
                "tournament_fetch_failed",
                error=e.message,
                background=background,
                loaded=self.loaded,
            )
            if not self.loaded:
                self.error = e.message
            return False

        if token <= self._applied:
            logger.debug("tournament_fetch_superseded", token=token, applied=self._applied)
            return False

        self._applied = token
        self.tournaments = tournaments
        self.loaded = True
        self.error = None
        self.fetch_count += 1
        logger.debug("tournaments_refreshed", count=len(tournaments), background=background)
        return True

    def reset(self) -> None:
        self.tournaments = []
        self.loaded = False
        self.error = None


class ReconciliationProtocol:
    """Keeps a TournamentView in step with the remote change feed.

    While mounted, a consumer task reads notifications from the
    ``tournaments`` channel. Each notification (plus any that queued up
    behind it) triggers one full re-fetch. Participation state is never
    touched here.
    """

    def __init__(self, backend: TournamentBackend, view: TournamentView) -> None:
        self.backend = backend
        self.view = view
        self.notifications = 0
        self._feed: ChangeFeed | None = None
        self._consumer: asyncio.Task[None] | None = None

    @property
    def mounted(self) -> bool:
        return self._feed is not None

    async def mount(self) -> None:
        """Subscribe, start consuming and run the initial fetch. Idempotent."""
        if self._feed is not None:
            return
        self._feed = await self.backend.subscribe(TOURNAMENTS_TABLE)
        self._consumer = asyncio.create_task(self._consume(self._feed))
        logger.info("reconciliation_mounted")
        await self.view.refresh()

    async def unmount(self) -> None:
        """Stop reconciling. No callbacks fire after this returns."""
        feed, consumer = self._feed, self._consumer
        self._feed = None
        self._consumer = None
        if consumer is not None:
            consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)
        if feed is not None:
            await feed.close()
        logger.info("reconciliation_unmounted")

    async def _consume(self, feed: ChangeFeed) -> None:
        try:
            async for event in feed:
                coalesced = feed.drain()
                self.notifications += 1 + coalesced
                logger.debug(
                    "change_notification",
                    table=event.table,
                    event_type=event.event_type,
                    coalesced=coalesced,
                )
                try:
                    await self.view.refresh(background=True)
                except Exception:
                    # Keep consuming; the next notification re-fetches again
                    logger.exception("tournament_refresh_failed", table=event.table)
        except Exception:
            logger.exception("reconciliation_failed")
            raise
        logger.info("change_feed_ended", table=feed.table)
