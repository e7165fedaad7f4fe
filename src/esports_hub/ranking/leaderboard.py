"""Leaderboard ranking for Esports Hub."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from esports_hub.models import PlayerStatistic


class SortKey(StrEnum):
    """Statistic a leaderboard is ordered by, descending."""

    TOTAL_POINTS = "total_points"
    TOTAL_WINS = "total_wins"
    KDR = "kdr"

    @classmethod
    def parse(cls, value: SortKey | str) -> SortKey:
        """Resolve a sort key from its field name or its UI alias.

        Args:
            value: ``SortKey``, field name, or one of ``points``/``wins``/``kdr``.

        Returns:
            Matching SortKey.

        Raises:
            ValueError: If the value names no known statistic.
        """
        if isinstance(value, SortKey):
            return value
        normalized = value.strip().lower()
        alias = _ALIASES.get(normalized)
        if alias is not None:
            return alias
        return cls(normalized)


_ALIASES = {
    "points": SortKey.TOTAL_POINTS,
    "wins": SortKey.TOTAL_WINS,
    "kd": SortKey.KDR,
}


@dataclass(frozen=True)
class RankedEntry:
    """A player's position on the leaderboard.

    Attributes:
        rank: 1-based position. Unique per entry, so equal scores get different ranks.
        stat: The player's statistics record.
    """

    rank: int
    stat: PlayerStatistic


def score_of(stat: PlayerStatistic, sort_key: SortKey) -> float:
    """Read the statistic selected by ``sort_key``."""
    return getattr(stat, sort_key.value)


def rank(
    statistics: Sequence[PlayerStatistic],
    sort_key: SortKey | str = SortKey.TOTAL_POINTS,
) -> list[RankedEntry]:
    """Order statistics by one field, highest first, and number them.

    Sorting is stable: players with equal scores keep the order in which
    ``statistics`` lists them. There is no secondary tie-break and no shared
    rank, so ranks are always exactly 1..N.

    Args:
        statistics: Player statistics, in fetch order.
        sort_key: Field to sort by.

    Returns:
        Ranked entries, best first.
    """
    key = SortKey.parse(sort_key)
    ordered = sorted(statistics, key=lambda s: score_of(s, key), reverse=True)
    return [RankedEntry(rank=position, stat=stat) for position, stat in enumerate(ordered, 1)]
