#!/usr/bin/env python
"""Seed a local DuckDB backend with demo tournaments and player profiles.

Point a config at the same file with ``backend: local`` to browse, join and
watch the seeded tournaments without a hosted project.
"""

import asyncio
import os
import random
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

from esports_hub.models import PlayerStatistic, Tournament, TournamentStatus, utc_now
from esports_hub.services.backend import LocalBackend

load_dotenv()

DATABASE_PATH = Path(os.environ.get("ESPORTS_HUB_DB", "./esports_hub.duckdb"))

GAMES = ["Valorant", "Rocket League", "Street Fighter 6", "Dota 2", "Apex Legends"]
PLAYERS = ["Nova", "Kestrel", "Ember", "Glitch", "Onyx", "Vega", "Quill", "Rook"]


def build_tournaments() -> list[Tournament]:
    """One tournament per game, spread around today, plus an ended and a cancelled one."""
    now = utc_now()
    tournaments = []
    for i, game in enumerate(GAMES):
        start = now + timedelta(days=7 * i - 3)
        tournaments.append(
            Tournament(
                name=f"{game} Open",
                description=f"Community {game} bracket",
                start_date=start,
                end_date=start + timedelta(days=2),
                max_participants=16 if i % 2 else 64,
                prize_pool=f"${(i + 1) * 500:,}",
                status=TournamentStatus.ONGOING if i == 0 else TournamentStatus.UPCOMING,
            )
        )
    tournaments.append(
        Tournament(
            name="Winter Invitational",
            start_date=now - timedelta(days=30),
            end_date=now - timedelta(days=28),
            status=TournamentStatus.COMPLETED,
        )
    )
    tournaments.append(
        Tournament(
            name="Cancelled Cup",
            start_date=now + timedelta(days=10),
            end_date=now + timedelta(days=11),
            status=TournamentStatus.CANCELLED,
        )
    )
    return tournaments


def build_profiles(seed: int = 42) -> list[PlayerStatistic]:
    rng = random.Random(seed)
    profiles = [
        PlayerStatistic(
            id=f"player-{i}",
            display_name=name,
            total_wins=rng.randint(0, 40),
            total_points=rng.randint(0, 5000),
            kdr=round(rng.uniform(0.3, 3.0), 2),
        )
        for i, name in enumerate(PLAYERS, 1)
    ]
    profiles.append(PlayerStatistic(id="admin", display_name="Organizer", is_admin=True))
    return profiles


async def main() -> None:
    backend = LocalBackend(DATABASE_PATH)
    try:
        tournaments = build_tournaments()
        profiles = build_profiles()
        await backend.seed(tournaments=tournaments, profiles=profiles)
    finally:
        await backend.close()

    print(f"Seeded {len(tournaments)} tournaments and {len(profiles)} profiles")
    print(f"Database: {DATABASE_PATH}")
    print("Sign in as 'player-1' (or 'admin') via ESPORTS_HUB_USER_ID")


if __name__ == "__main__":
    asyncio.run(main())
