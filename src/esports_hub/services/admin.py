"""Admin tournament management, gated on the caller's admin flag."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from esports_hub.core.errors import UnauthorizedError
from esports_hub.models import Tournament, TournamentDraft

if TYPE_CHECKING:
    from esports_hub.core.session import AuthContext
    from esports_hub.services.backend import TournamentBackend

logger = structlog.get_logger()


class AdminService:
    """Create, edit and delete tournaments.

    Every operation checks the session first; a non-admin caller gets
    ``UnauthorizedError`` and no remote call is made.
    """

    def __init__(self, session: AuthContext, backend: TournamentBackend) -> None:
        self.session = session
        self.backend = backend

    def _require_admin(self, operation: str) -> str:
        if self.session.user_id is None or not self.session.is_admin:
            logger.warning("admin_denied", operation=operation, user_id=self.session.user_id)
            raise UnauthorizedError(operation)
        return self.session.user_id

    async def list_tournaments(self) -> list[Tournament]:
        """All tournaments, newest first."""
        self._require_admin("list tournaments")
        return await self.backend.fetch_tournaments(order="created_at")

    async def create_tournament(self, draft: TournamentDraft) -> Tournament:
        user_id = self._require_admin("create tournaments")
        tournament = await self.backend.insert_tournament(draft, created_by=user_id)
        logger.info("tournament_created", tournament_id=tournament.id, name=tournament.name)
        return tournament

    async def update_tournament(self, tournament_id: str, draft: TournamentDraft) -> Tournament:
        self._require_admin("edit tournaments")
        tournament = await self.backend.update_tournament(tournament_id, draft)
        logger.info("tournament_updated", tournament_id=tournament_id)
        return tournament

    async def delete_tournament(self, tournament_id: str) -> None:
        self._require_admin("delete tournaments")
        await self.backend.delete_tournament(tournament_id)
        logger.info("tournament_deleted", tournament_id=tournament_id)
