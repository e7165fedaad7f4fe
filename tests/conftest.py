"""Shared fixtures: a scripted in-memory backend and tournament factories."""

import asyncio
from collections import defaultdict
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from esports_hub.core.errors import RemoteWriteConflict
from esports_hub.models import (
    Participant,
    PlayerStatistic,
    Tournament,
    TournamentDraft,
    TournamentStatus,
    as_utc,
)
from esports_hub.ranking import SortKey, score_of
from esports_hub.services.backend import ChangeEvent, ChangeFeed, TournamentBackend

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


class ScriptedBackend(TournamentBackend):
    """In-memory backend whose calls can be held open or made to fail.

    ``hold(method)`` returns an event the next call to ``method`` waits on;
    ``fail_next(method, error)`` makes the next call raise. Every call is
    recorded in ``calls`` before it suspends.
    """

    def __init__(self) -> None:
        self.tournaments: list[Tournament] = []
        self.participants: set[tuple[str, str]] = set()
        self.statistics: list[PlayerStatistic] = []
        self.calls: list[tuple] = []
        self.feeds: list[ChangeFeed] = []
        self.closed = False
        self._gates: dict[str, list[asyncio.Event]] = defaultdict(list)
        self._failures: dict[str, list[Exception]] = defaultdict(list)

    def hold(self, method: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[method].append(gate)
        return gate

    def fail_next(self, method: str, error: Exception) -> None:
        self._failures[method].append(error)

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def notify(self, table: str = "tournaments", event_type: str = "*") -> None:
        for feed in self.feeds:
            if feed.table == table:
                feed.publish(ChangeEvent(table=table, event_type=event_type))

    async def _enter(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        gate = self._gates[method].pop(0) if self._gates[method] else None
        failure = self._failures[method].pop(0) if self._failures[method] else None
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if failure is not None:
            raise failure

    async def fetch_tournaments(self, order="start_date"):
        if order == "created_at":
            snapshot = sorted(self.tournaments, key=lambda t: as_utc(t.created_at), reverse=True)
        else:
            snapshot = sorted(self.tournaments, key=lambda t: as_utc(t.start_date))
        await self._enter("fetch_tournaments", order)
        return snapshot

    async def fetch_participations(self, user_id):
        snapshot = [
            Participant(tournament_id=tid, user_id=uid)
            for tid, uid in sorted(self.participants)
            if uid == user_id
        ]
        await self._enter("fetch_participations", user_id)
        return snapshot

    async def fetch_leaderboard(self, sort_key, limit):
        key = SortKey.parse(sort_key)
        snapshot = sorted(self.statistics, key=lambda s: score_of(s, key), reverse=True)[:limit]
        await self._enter("fetch_leaderboard", key, limit)
        return snapshot

    async def fetch_profile(self, user_id):
        await self._enter("fetch_profile", user_id)
        return next((s for s in self.statistics if s.id == user_id), None)

    async def insert_participant(self, tournament_id, user_id):
        await self._enter("insert_participant", tournament_id, user_id)
        if (tournament_id, user_id) in self.participants:
            raise RemoteWriteConflict("duplicate key value", code="23505")
        self.participants.add((tournament_id, user_id))
        return Participant(tournament_id=tournament_id, user_id=user_id)

    async def delete_participant(self, tournament_id, user_id):
        await self._enter("delete_participant", tournament_id, user_id)
        self.participants.discard((tournament_id, user_id))

    async def insert_tournament(self, draft: TournamentDraft, created_by):
        await self._enter("insert_tournament", draft.name, created_by)
        tournament = Tournament(**draft.to_row(), created_by=created_by)
        self.tournaments.append(tournament)
        self.notify()
        return tournament

    async def update_tournament(self, tournament_id, draft: TournamentDraft):
        await self._enter("update_tournament", tournament_id)
        tournament = next((t for t in self.tournaments if t.id == tournament_id), None)
        if tournament is None:
            raise RemoteWriteConflict(f"Tournament {tournament_id} not found", code="not_found")
        for key, value in draft.to_row().items():
            setattr(tournament, key, value)
        self.notify()
        return tournament

    async def delete_tournament(self, tournament_id):
        await self._enter("delete_tournament", tournament_id)
        self.tournaments = [t for t in self.tournaments if t.id != tournament_id]
        self.notify()

    async def subscribe(self, table):
        self.calls.append(("subscribe", table))
        feed = ChangeFeed(table)
        self.feeds.append(feed)
        return feed

    async def close(self):
        self.closed = True


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def make_tournament() -> Callable[..., Tournament]:
    """Factory for tournaments dated relative to ``NOW``."""

    def _make(
        name: str = "Spring Open",
        starts_in_days: float = 1,
        lasts_days: float = 2,
        status: TournamentStatus = TournamentStatus.UPCOMING,
        **kwargs,
    ) -> Tournament:
        start = NOW + timedelta(days=starts_in_days)
        return Tournament(
            name=name,
            start_date=start,
            end_date=start + timedelta(days=lasts_days),
            status=status.value,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_stat() -> Callable[..., PlayerStatistic]:
    def _make(player_id: str, points: int = 0, wins: int = 0, kdr: float = 0.0, **kwargs):
        return PlayerStatistic(
            id=player_id,
            display_name=kwargs.pop("display_name", player_id),
            total_points=points,
            total_wins=wins,
            kdr=kdr,
            **kwargs,
        )

    return _make


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


@pytest.fixture
def eventually() -> Callable:
    return wait_until


@pytest.fixture
def now() -> datetime:
    return NOW
