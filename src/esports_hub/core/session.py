"""Authentication context shared by the participation, leaderboard and admin services."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from esports_hub.models import PlayerStatistic

logger = structlog.get_logger()


class AuthContext:
    """Identity of the signed-in user, bound at session start and cleared at sign-out.

    Services hold a reference to one context and read it at call time, so a
    sign-in or sign-out is visible to all of them without re-wiring.

    Attributes:
        user_id: Opaque ID of the signed-in user, or None when anonymous.
        profile: The user's profile row if it has been loaded.
        generation: Incremented on every bind/clear. Work started under an
            older generation belongs to a previous session.
    """

    def __init__(self) -> None:
        self.user_id: str | None = None
        self.profile: PlayerStatistic | None = None
        self.generation = 0

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.is_admin

    def bind(self, user_id: str, profile: PlayerStatistic | None = None) -> None:
        """Bind a user identity at session start.

        Args:
            user_id: Authenticated user ID.
            profile: Optional profile row carrying the admin flag.
        """
        if profile is not None and profile.id != user_id:
            msg = f"Profile {profile.id} does not belong to user {user_id}"
            raise ValueError(msg)
        self.user_id = user_id
        self.profile = profile
        self.generation += 1
        logger.info("session_bound", user_id=user_id, is_admin=self.is_admin)

    def clear(self) -> None:
        """Forget the bound identity at sign-out."""
        if self.user_id is not None:
            logger.info("session_cleared", user_id=self.user_id)
        self.user_id = None
        self.profile = None
        self.generation += 1
