"""Leaderboard service: fetches top player statistics and ranks them."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from esports_hub.core.config import LEADERBOARD_LIMIT
from esports_hub.core.errors import RemoteError
from esports_hub.models import PlayerStatistic
from esports_hub.ranking import RankedEntry, SortKey, rank

if TYPE_CHECKING:
    from esports_hub.core.session import AuthContext
    from esports_hub.services.backend import TournamentBackend

logger = structlog.get_logger()


class LeaderboardService:
    """Holds the sort key and the last fetched statistics; re-ranks on change.

    Ranking itself is the stateless ``rank`` function. This service only
    decides when to fetch and keeps the last good result when a fetch fails.
    """

    def __init__(
        self,
        session: AuthContext,
        backend: TournamentBackend,
        sort_key: SortKey | str = SortKey.TOTAL_POINTS,
        limit: int = LEADERBOARD_LIMIT,
    ) -> None:
        """Initialize the leaderboard service.

        Args:
            session: Authentication context, used to find the caller's entry.
            backend: Remote store.
            sort_key: Initial sort key.
            limit: Number of players fetched (at most 100).
        """
        self.session = session
        self.backend = backend
        self.sort_key = SortKey.parse(sort_key)
        self.limit = min(limit, LEADERBOARD_LIMIT)
        self.loaded = False
        self._statistics: list[PlayerStatistic] = []
        self._ranking: list[RankedEntry] = []
        self._issued = 0
        self._applied = 0

    async def set_sort_key(self, sort_key: SortKey | str) -> None:
        """Switch the sort key and refresh.

        Raises:
            ValueError: If the key names no known statistic.
        """
        key = SortKey.parse(sort_key)
        if key != self.sort_key:
            self.sort_key = key
            # Re-rank what we have so the display follows the key even if the fetch fails
            self._ranking = rank(self._statistics, key)
        await self.refresh()

    async def refresh(self) -> bool:
        """Fetch the top players for the current key and re-rank.

        Returns:
            True if fresh statistics were applied.
        """
        key = self.sort_key
        self._issued += 1
        token = self._issued
        try:
            statistics = await self.backend.fetch_leaderboard(key, self.limit)
        except RemoteError as e:
            logger.error("leaderboard_fetch_failed", sort_key=key.value, error=e.message)
            return False

        if key != self.sort_key or token <= self._applied:
            logger.debug("leaderboard_fetch_superseded", sort_key=key.value, token=token)
            return False

        self._applied = token
        self._statistics = statistics[: self.limit]
        self._ranking = rank(self._statistics, key)
        self.loaded = True
        logger.debug("leaderboard_refreshed", sort_key=key.value, players=len(self._ranking))
        return True

    def current_ranking(self) -> tuple[RankedEntry, ...]:
        return tuple(self._ranking)

    def current_user_entry(self) -> RankedEntry | None:
        """The signed-in user's entry, if they made the list."""
        user_id = self.session.user_id
        if user_id is None:
            return None
        return next((entry for entry in self._ranking if entry.stat.id == user_id), None)
