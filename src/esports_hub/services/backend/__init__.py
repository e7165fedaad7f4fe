from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from .base import ChangeEvent, ChangeFeed, TournamentBackend, TournamentOrder
from .local import LocalBackend
from .realtime import RealtimeChannel, parse_message
from .supabase import SupabaseBackend, raise_for_error

if TYPE_CHECKING:
    from esports_hub.core.config import HubConfig

logger = structlog.get_logger()


def create_backend(config: HubConfig) -> TournamentBackend:
    """Create the backend selected by ``config.backend``.

    Args:
        config: Hub configuration.

    Returns:
        TournamentBackend instance.

    Raises:
        MissingCredentialsError: If the hosted backend lacks URL or anon key.
    """
    if config.backend == "local":
        logger.info("using_local_backend", path=config.local.database_path)
        return LocalBackend(config.local.database_path)

    return SupabaseBackend(
        url=config.supabase.get_url(),
        anon_key=config.supabase.get_anon_key(),
        access_token=config.supabase.get_access_token(),
        timeout=config.remote_timeout_seconds,
        heartbeat_seconds=config.supabase.heartbeat_seconds,
    )


__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "LocalBackend",
    "RealtimeChannel",
    "SupabaseBackend",
    "TournamentBackend",
    "TournamentOrder",
    "create_backend",
    "parse_message",
    "raise_for_error",
]
