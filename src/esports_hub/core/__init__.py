"""Core configuration, errors and session context for Esports Hub."""

from esports_hub.core.config import (
    LEADERBOARD_LIMIT,
    HubConfig,
    LeaderboardConfig,
    LocalConfig,
    SupabaseConfig,
    load_config,
)
from esports_hub.core.errors import (
    ConfigurationError,
    HubError,
    InvalidSortKey,
    MissingCredentialsError,
    ParticipationRejected,
    RemoteError,
    RemoteTimeoutError,
    RemoteWriteConflict,
    UnauthorizedError,
)
from esports_hub.core.session import AuthContext

__all__ = [
    "LEADERBOARD_LIMIT",
    "AuthContext",
    "HubConfig",
    "LeaderboardConfig",
    "LocalConfig",
    "SupabaseConfig",
    "load_config",
    "ConfigurationError",
    "HubError",
    "InvalidSortKey",
    "MissingCredentialsError",
    "ParticipationRejected",
    "RemoteError",
    "RemoteTimeoutError",
    "RemoteWriteConflict",
    "UnauthorizedError",
]
