"""Tournament participation: the local joined-set and the join/leave state machine."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

import structlog

from esports_hub.core.errors import ParticipationRejected, RemoteError
from esports_hub.models import TournamentStatus, utc_now

if TYPE_CHECKING:
    from esports_hub.core.session import AuthContext
    from esports_hub.services.backend import TournamentBackend
    from esports_hub.services.reconciliation import TournamentView

logger = structlog.get_logger()


class PairState(StrEnum):
    """Participation state of the signed-in user in one tournament."""

    NOT_JOINED = "not-joined"
    JOINED = "joined"
    JOINING = "joining"
    LEAVING = "leaving"


@dataclass(frozen=True)
class PendingChange:
    """An in-flight join or leave with its tentative and inverse memberships.

    Attributes:
        seq: Issuance order across all commands.
        tournament_id: Target tournament.
        kind: ``join`` or ``leave``.
        tentative: Membership applied locally when the command was issued.
        inverse: Membership before the command was issued.
        generation: Participation store generation the command belongs to.
    """

    seq: int
    tournament_id: str
    kind: Literal["join", "leave"]
    tentative: bool
    inverse: bool
    generation: int


class ParticipationStore:
    """Set of tournament IDs the signed-in user has joined, as shown to the UI.

    ``reset`` starts a new generation; completions of commands issued under
    an older generation must not write here.
    """

    def __init__(self) -> None:
        self._joined: set[str] = set()
        self.generation = 0
        self.loaded = False

    @property
    def joined(self) -> frozenset[str]:
        return frozenset(self._joined)

    def is_joined(self, tournament_id: str) -> bool:
        return tournament_id in self._joined

    def set_member(self, tournament_id: str, member: bool) -> None:
        if member:
            self._joined.add(tournament_id)
        else:
            self._joined.discard(tournament_id)

    def replace(self, tournament_ids: Iterable[str]) -> None:
        self._joined = set(tournament_ids)
        self.loaded = True

    def reset(self) -> None:
        self._joined = set()
        self.loaded = False
        self.generation += 1


class ParticipationStateMachine:
    """Join/leave commands with optimistic update and rollback.

    A command is validated, applied to the store immediately, then sent to
    the backend. Remote calls on the same tournament go out in issuance
    order. Each success advances the pair's confirmed membership; when the
    last outstanding command on a pair settles, the store is set to that
    confirmed membership. A single failed command therefore restores the
    pre-command state, and a burst of commands converges on whatever the
    backend last accepted.
    """

    def __init__(
        self,
        session: AuthContext,
        backend: TournamentBackend,
        store: ParticipationStore,
        tournaments: TournamentView,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the state machine.

        Args:
            session: Authentication context read at command time.
            backend: Remote store.
            store: Local participation set to update.
            tournaments: Tournament view used to validate joins.
            clock: Source of the evaluation time for "has ended" checks.
        """
        self.session = session
        self.backend = backend
        self.store = store
        self.tournaments = tournaments
        self.clock = clock
        self._seq = itertools.count(1)
        self._pending: dict[str, list[PendingChange]] = {}
        self._confirmed: dict[str, bool] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # ==================== Queries ====================

    def is_joined(self, tournament_id: str) -> bool:
        return self.store.is_joined(tournament_id)

    def state(self, tournament_id: str) -> PairState:
        """Current state of the pair, in-flight states included."""
        pending = self._pending.get(tournament_id)
        if pending:
            return PairState.JOINING if pending[-1].kind == "join" else PairState.LEAVING
        if self.store.is_joined(tournament_id):
            return PairState.JOINED
        return PairState.NOT_JOINED

    def in_flight(self, tournament_id: str) -> tuple[PendingChange, ...]:
        return tuple(self._pending.get(tournament_id, ()))

    # ==================== Loading ====================

    async def load(self) -> None:
        """Project the user's participant rows into the store.

        Pairs with commands in flight keep their optimistic value; only
        their confirmed membership is updated. Read failures are logged and
        the last-known set is kept.
        """
        user_id = self.session.user_id
        if user_id is None:
            self.store.replace(())
            return

        generation = self.store.generation
        try:
            rows = await self.backend.fetch_participations(user_id)
        except RemoteError as e:
            logger.error("participations_fetch_failed", user_id=user_id, error=e.message)
            return

        if generation != self.store.generation or user_id != self.session.user_id:
            logger.debug("participations_fetch_discarded", user_id=user_id)
            return

        fetched = {row.tournament_id for row in rows}
        optimistic = {tid for tid in self._pending if self.store.is_joined(tid)}
        for tid in self._pending:
            self._confirmed[tid] = tid in fetched
        settled = fetched - set(self._pending)
        self.store.replace(settled | optimistic)
        logger.info("participations_loaded", user_id=user_id, count=len(fetched))

    def reset(self) -> None:
        """Drop local state; completions still in flight will be discarded."""
        self.store.reset()
        self._pending.clear()
        self._confirmed.clear()
        self._locks.clear()

    # ==================== Commands ====================

    async def join(self, tournament_id: str) -> None:
        """Join a tournament.

        Raises:
            ParticipationRejected: Tournament unknown, cancelled or ended.
            RemoteError: Remote insert failed; local state was rolled back.
        """
        user_id = self.session.user_id
        if user_id is None:
            logger.debug("join_ignored_anonymous", tournament_id=tournament_id)
            return
        if self.store.is_joined(tournament_id):
            return

        self._validate_join(tournament_id)
        change = self._begin(tournament_id, "join")
        await self._dispatch(
            change, lambda: self.backend.insert_participant(tournament_id, user_id)
        )

    async def leave(self, tournament_id: str) -> None:
        """Leave a tournament. A no-op when not joined.

        Raises:
            RemoteError: Remote delete failed; local state was rolled back.
        """
        user_id = self.session.user_id
        if user_id is None:
            logger.debug("leave_ignored_anonymous", tournament_id=tournament_id)
            return
        if not self.store.is_joined(tournament_id):
            return

        change = self._begin(tournament_id, "leave")
        await self._dispatch(
            change, lambda: self.backend.delete_participant(tournament_id, user_id)
        )

    def _validate_join(self, tournament_id: str) -> None:
        tournament = self.tournaments.get(tournament_id)
        if tournament is None:
            raise ParticipationRejected(tournament_id, "Tournament not found")
        if tournament.status == TournamentStatus.CANCELLED:
            raise ParticipationRejected(tournament_id, "Tournament has been cancelled")
        if not tournament.is_joinable(self.clock()):
            raise ParticipationRejected(tournament_id, "Tournament has already ended")

    def _begin(self, tournament_id: str, kind: Literal["join", "leave"]) -> PendingChange:
        """Record the command and apply its tentative membership."""
        current = self.store.is_joined(tournament_id)
        pending = self._pending.setdefault(tournament_id, [])
        if not pending:
            self._confirmed[tournament_id] = current
        change = PendingChange(
            seq=next(self._seq),
            tournament_id=tournament_id,
            kind=kind,
            tentative=kind == "join",
            inverse=current,
            generation=self.store.generation,
        )
        pending.append(change)
        self.store.set_member(tournament_id, change.tentative)
        logger.debug(
            "participation_tentative", tournament_id=tournament_id, kind=kind, seq=change.seq
        )
        return change

    async def _dispatch(
        self, change: PendingChange, call: Callable[[], Awaitable[object]]
    ) -> None:
        """Send the remote call in issuance order and settle the outcome."""
        tid = change.tournament_id
        lock = self._locks.setdefault(tid, asyncio.Lock())
        try:
            async with lock:
                await self._call_and_settle(change, call)
        except asyncio.CancelledError:
            # Cancelled while queued behind an earlier command on the pair
            self._settle(change, succeeded=False)
            raise
        finally:
            if tid not in self._pending and self._locks.get(tid) is lock and not lock.locked():
                del self._locks[tid]

    async def _call_and_settle(
        self, change: PendingChange, call: Callable[[], Awaitable[object]]
    ) -> None:
        try:
            await call()
        except RemoteError as e:
            self._settle(change, succeeded=False)
            logger.warning(
                "participation_rolled_back",
                tournament_id=change.tournament_id,
                kind=change.kind,
                error=e.message,
            )
            raise
        except BaseException as e:
            # Unmapped failures and cancellation roll back too
            self._settle(change, succeeded=False)
            logger.error(
                "participation_failed",
                tournament_id=change.tournament_id,
                kind=change.kind,
                error=repr(e),
            )
            raise
        self._settle(change, succeeded=True)
        logger.info(
            "participation_confirmed", tournament_id=change.tournament_id, kind=change.kind
        )

    def _settle(self, change: PendingChange, succeeded: bool) -> None:
        if change.generation != self.store.generation:
            logger.debug("participation_completion_discarded", seq=change.seq)
            return

        tid = change.tournament_id
        if succeeded:
            self._confirmed[tid] = change.tentative
        pending = self._pending.get(tid, [])
        if change not in pending:
            return
        pending.remove(change)
        if pending:
            return

        # Last outstanding command on the pair: follow the remote outcome
        self._pending.pop(tid, None)
        self.store.set_member(tid, self._confirmed.pop(tid, change.inverse))
