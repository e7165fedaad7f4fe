"""Session-level facade wiring participation, reconciliation, leaderboard and admin."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

import structlog

from esports_hub.core.config import HubConfig
from esports_hub.core.errors import HubError, InvalidSortKey
from esports_hub.core.session import AuthContext
from esports_hub.models import Tournament
from esports_hub.ranking import RankedEntry, SortKey
from esports_hub.services.admin import AdminService
from esports_hub.services.backend import TournamentBackend, create_backend
from esports_hub.services.leaderboard import LeaderboardService
from esports_hub.services.participation import (
    PairState,
    ParticipationStateMachine,
    ParticipationStore,
)
from esports_hub.services.reconciliation import ReconciliationProtocol, TournamentView

logger = structlog.get_logger()

ErrorReporter = Callable[[HubError], None]


class EsportsHub:
    """Commands and queries offered to the UI layer for one session.

    Commands never raise ``HubError``: failures go to the error reporter
    (an alert in a UI, a log line and ``errors`` entry by default). Use
    ``spawn`` to fire a command without awaiting it.
    """

    def __init__(
        self,
        backend: TournamentBackend,
        session: AuthContext | None = None,
        sort_key: SortKey | str = SortKey.TOTAL_POINTS,
        leaderboard_limit: int = 100,
        reporter: ErrorReporter | None = None,
    ) -> None:
        """Wire the services around one backend and session.

        Args:
            backend: Remote store.
            session: Authentication context; a fresh anonymous one if omitted.
            sort_key: Initial leaderboard sort key.
            leaderboard_limit: Players fetched for the leaderboard.
            reporter: Callback receiving command failures.
        """
        self.backend = backend
        self.session = session or AuthContext()
        self.errors: list[HubError] = []
        self._reporter = reporter or self._record_error
        self._tasks: set[asyncio.Task[Any]] = set()

        self.view = TournamentView(backend)
        self.participations = ParticipationStore()
        self.machine = ParticipationStateMachine(
            self.session, backend, self.participations, self.view
        )
        self.reconciliation = ReconciliationProtocol(backend, self.view)
        self.leaderboard = LeaderboardService(
            self.session, backend, sort_key=sort_key, limit=leaderboard_limit
        )
        self.admin = AdminService(self.session, backend)

    def _record_error(self, error: HubError) -> None:
        logger.warning("command_failed", error_type=type(error).__name__, error=error.message)
        self.errors.append(error)

    def _report(self, error: HubError) -> None:
        self._reporter(error)

    # ==================== Session ====================

    async def sign_in(self, user_id: str) -> None:
        """Bind a user and load their profile and participations.

        A profile fetch failure leaves the user signed in without admin rights.
        """
        self.machine.reset()
        self.session.bind(user_id)
        try:
            profile = await self.backend.fetch_profile(user_id)
        except HubError as e:
            self._report(e)
            profile = None
        if profile is not None and self.session.user_id == user_id:
            self.session.profile = profile
        if self.reconciliation.mounted:
            await self.machine.load()

    def sign_out(self) -> None:
        self.machine.reset()
        self.session.clear()

    # ==================== Tournament view ====================

    async def mount_tournaments(self) -> None:
        """Show the tournament list: subscribe to changes and load everything."""
        await self.reconciliation.mount()
        await self.machine.load()

    async def unmount_tournaments(self) -> None:
        """Hide the tournament list; in-flight joins/leaves finish without touching it."""
        await self.reconciliation.unmount()
        self.machine.reset()
        self.view.reset()

    @property
    def tournaments(self) -> list[Tournament]:
        return list(self.view.tournaments)

    def is_joined(self, tournament_id: str) -> bool:
        return self.machine.is_joined(tournament_id)

    def participation_state(self, tournament_id: str) -> PairState:
        return self.machine.state(tournament_id)

    async def join_tournament(self, tournament_id: str) -> None:
        try:
            await self.machine.join(tournament_id)
        except HubError as e:
            self._report(e)

    async def leave_tournament(self, tournament_id: str) -> None:
        try:
            await self.machine.leave(tournament_id)
        except HubError as e:
            self._report(e)

    # ==================== Leaderboard ====================

    async def set_sort_key(self, sort_key: SortKey | str) -> None:
        try:
            key = SortKey.parse(sort_key)
        except ValueError:
            self._report(InvalidSortKey(str(sort_key)))
            return
        await self.leaderboard.set_sort_key(key)

    async def refresh_leaderboard(self) -> None:
        await self.leaderboard.refresh()

    def current_ranking(self) -> tuple[RankedEntry, ...]:
        return self.leaderboard.current_ranking()

    # ==================== Lifecycle ====================

    def spawn(self, command: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        """Run a command in the background, keeping a reference until it completes."""
        task = asyncio.create_task(command)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for spawned commands to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        await self.drain()
        await self.reconciliation.unmount()
        await self.backend.close()


async def open_hub(config: HubConfig, reporter: ErrorReporter | None = None) -> EsportsHub:
    """Create a hub for the configured backend and user.

    Args:
        config: Hub configuration.
        reporter: Optional command-failure callback.

    Returns:
        EsportsHub, signed in if the config names a user.
    """
    backend = create_backend(config)
    hub = EsportsHub(
        backend,
        sort_key=config.leaderboard.default_sort,
        leaderboard_limit=config.leaderboard.limit,
        reporter=reporter,
    )
    user_id = config.get_user_id()
    if user_id:
        await hub.sign_in(user_id)
    return hub
