"""Backend interface for the remote relational store and its change feed."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from esports_hub.models import utc_now

if TYPE_CHECKING:
    from esports_hub.models import (
        Participant,
        PlayerStatistic,
        Tournament,
        TournamentDraft,
    )
    from esports_hub.ranking import SortKey

TournamentOrder = Literal["start_date", "created_at"]


@dataclass(frozen=True)
class ChangeEvent:
    """A "something changed" signal for one table.

    The payload is informational only; consumers re-fetch instead of patching.
    """

    table: str
    event_type: str = "*"
    received_at: datetime = field(default_factory=utc_now)


class ChangeFeed:
    """Async stream of change events backed by a queue.

    Producers call ``publish``; one consumer iterates with ``async for``.
    Iteration ends after ``close``.
    """

    _CLOSED = object()

    def __init__(self, table: str) -> None:
        self.table = table
        self.closed = False
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    def publish(self, event: ChangeEvent) -> None:
        """Queue an event for the consumer. Ignored once closed."""
        if not self.closed:
            self._queue.put_nowait(event)

    def drain(self) -> int:
        """Discard events already queued and return how many were dropped."""
        dropped = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            if item is self._CLOSED:
                self._queue.put_nowait(item)
                return dropped
            dropped += 1

    async def close(self) -> None:
        """Stop delivery and end iteration."""
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self

    async def __anext__(self) -> ChangeEvent:
        item = await self._queue.get()
        if item is self._CLOSED:
            self._queue.put_nowait(item)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


class TournamentBackend(ABC):
    """Abstract base class for async tournament stores.

    Every method is a suspension point. Implementations raise
    ``RemoteError`` subclasses with the store's message kept verbatim.
    """

    @abstractmethod
    async def fetch_tournaments(self, order: TournamentOrder = "start_date") -> list[Tournament]:
        """Fetch all tournaments.

        Args:
            order: ``start_date`` ascending, or ``created_at`` descending (admin view).

        Returns:
            Tournaments in the requested order.
        """

    @abstractmethod
    async def fetch_participations(self, user_id: str) -> list[Participant]:
        """Fetch the participant rows of one user."""

    @abstractmethod
    async def fetch_leaderboard(self, sort_key: SortKey, limit: int) -> list[PlayerStatistic]:
        """Fetch the top ``limit`` player statistics ordered by ``sort_key`` descending."""

    @abstractmethod
    async def fetch_profile(self, user_id: str) -> PlayerStatistic | None:
        """Fetch one user's profile, or None if it does not exist."""

    @abstractmethod
    async def insert_participant(self, tournament_id: str, user_id: str) -> Participant:
        """Create the participant row for (tournament, user).

        Raises:
            RemoteWriteConflict: Duplicate join or tournament at capacity.
        """

    @abstractmethod
    async def delete_participant(self, tournament_id: str, user_id: str) -> None:
        """Delete the participant row for (tournament, user)."""

    @abstractmethod
    async def insert_tournament(self, draft: TournamentDraft, created_by: str) -> Tournament:
        """Create a tournament."""

    @abstractmethod
    async def update_tournament(self, tournament_id: str, draft: TournamentDraft) -> Tournament:
        """Overwrite a tournament's editable fields and stamp ``updated_at``."""

    @abstractmethod
    async def delete_tournament(self, tournament_id: str) -> None:
        """Delete a tournament."""

    @abstractmethod
    async def subscribe(self, table: str) -> ChangeFeed:
        """Open a change channel for ``table`` covering insert, update and delete."""

    async def close(self) -> None:  # noqa: B027
        """Close any resources. Override if needed."""
