"""Plain-text renderings of the leaderboard and tournament list."""

from __future__ import annotations

from collections.abc import Collection, Sequence

from tabulate import tabulate

from esports_hub.models import Tournament, as_utc
from esports_hub.ranking import RankedEntry, SortKey

_SORT_TITLES = {
    SortKey.TOTAL_POINTS: "Total Points",
    SortKey.TOTAL_WINS: "Total Wins",
    SortKey.KDR: "K/D Ratio",
}

_MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


def rank_label(rank: int) -> str:
    """Medal for the podium, ``#N`` below it."""
    return _MEDALS.get(rank, f"#{rank}")


def leaderboard_rows(entries: Sequence[RankedEntry]) -> list[tuple[str, str, int, str, str]]:
    rows = []
    for entry in entries:
        stat = entry.stat
        name = f"{stat.display_name} (admin)" if stat.is_admin else stat.display_name
        rows.append(
            (
                rank_label(entry.rank),
                name,
                stat.total_wins,
                f"{stat.total_points:,}",
                f"{stat.kdr:.2f}",
            )
        )
    return rows


def generate_leaderboard_report(entries: Sequence[RankedEntry], sort_key: SortKey) -> str:
    """Render the leaderboard as a markdown table.

    Args:
        entries: Ranked entries, best first.
        sort_key: Key the entries were ranked by (shown in the heading).

    Returns:
        Markdown report content.
    """
    lines = [f"# Leaderboard by {_SORT_TITLES[sort_key]}", ""]
    if not entries:
        lines.append("No players on leaderboard yet")
        return "\n".join(lines)
    lines.append(
        tabulate(
            leaderboard_rows(entries),
            headers=("Rank", "Player", "Wins", "Points", "K/D"),
            tablefmt="github",
        )
    )
    return "\n".join(lines)


def generate_tournament_report(
    tournaments: Sequence[Tournament], joined: Collection[str] = ()
) -> str:
    """Render the tournament list as a markdown table."""
    if not tournaments:
        return "No tournaments available yet"
    rows = [
        (
            t.name,
            t.status,
            as_utc(t.start_date).date().isoformat(),
            as_utc(t.end_date).date().isoformat(),
            t.max_participants,
            t.prize_pool or "",
            "yes" if t.id in joined else "",
        )
        for t in tournaments
    ]
    return tabulate(
        rows,
        headers=("Name", "Status", "Start", "End", "Max Players", "Prize Pool", "Joined"),
        tablefmt="github",
    )
