"""Esports Hub.

Tournament participation, realtime reconciliation and leaderboard ranking
for an esports community front end.
"""

from esports_hub.ranking import RankedEntry, SortKey, rank

__version__ = "0.1.0"
__all__ = [
    "RankedEntry",
    "SortKey",
    "__version__",
    "rank",
]
