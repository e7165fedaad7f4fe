"""Ranking module for Esports Hub.

Turns raw player statistics into an ordered, numbered leaderboard.
"""

from esports_hub.ranking.leaderboard import RankedEntry, SortKey, rank, score_of

__all__ = [
    "RankedEntry",
    "SortKey",
    "rank",
    "score_of",
]
