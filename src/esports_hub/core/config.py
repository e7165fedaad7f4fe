"""Configuration schemas and loading for Esports Hub."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from esports_hub.core.errors import MissingCredentialsError

LEADERBOARD_LIMIT = 100
DEFAULT_TIMEOUT_SECONDS = 10.0


class SupabaseConfig(BaseModel):
    """Connection settings for the hosted store.

    Attributes:
        url: Project URL, e.g. ``https://abc.supabase.co``.
        anon_key: Public anon key sent as ``apikey``.
        access_token: Session JWT of the signed-in user. Falls back to the anon key.
        heartbeat_seconds: Interval between realtime heartbeats.
    """

    url: str | None = None
    anon_key: str | None = None
    access_token: str | None = None
    heartbeat_seconds: float = Field(default=25.0, gt=0)

    def get_url(self) -> str:
        """Get project URL from config or environment."""
        url = self.url or os.environ.get("SUPABASE_URL")
        if not url:
            raise MissingCredentialsError("url")
        return url.rstrip("/")

    def get_anon_key(self) -> str:
        """Get anon key from config or environment."""
        key = self.anon_key or os.environ.get("SUPABASE_ANON_KEY")
        if not key:
            raise MissingCredentialsError("anon key")
        return key

    def get_access_token(self) -> str | None:
        return self.access_token or os.environ.get("SUPABASE_ACCESS_TOKEN")


class LocalConfig(BaseModel):
    """Embedded DuckDB backend settings."""

    database_path: str = "./esports_hub.duckdb"


class LeaderboardConfig(BaseModel):
    """Leaderboard fetch settings."""

    limit: int = Field(default=LEADERBOARD_LIMIT, ge=1, le=LEADERBOARD_LIMIT)
    default_sort: Literal["total_points", "total_wins", "kdr"] = "total_points"


class HubConfig(BaseModel):
    """Complete hub configuration."""

    backend: Literal["supabase", "local"] = "supabase"
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)
    local: LocalConfig = Field(default_factory=LocalConfig)
    leaderboard: LeaderboardConfig = Field(default_factory=LeaderboardConfig)
    # None waits for the remote call's own failure
    remote_timeout_seconds: float | None = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    user_id: str | None = None

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str | None) -> str | None:
        """Treat blank user IDs as anonymous."""
        if v is not None and not v.strip():
            return None
        return v

    def get_user_id(self) -> str | None:
        """Get the signed-in user ID from config or environment."""
        return self.user_id or os.environ.get("ESPORTS_HUB_USER_ID") or None


def load_config(path: str | Path) -> HubConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to YAML configuration file.

    Returns:
        Validated HubConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        pydantic.ValidationError: If config is invalid.
    """
    config_path = Path(path)
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open() as f:
        data = yaml.safe_load(f) or {}

    return HubConfig.model_validate(data)
