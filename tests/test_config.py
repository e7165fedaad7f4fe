"""Tests for configuration loading and validation."""

import tempfile
from pathlib import Path

import pydantic
import pytest
import yaml

from esports_hub.core.config import (
    HubConfig,
    LeaderboardConfig,
    SupabaseConfig,
    load_config,
)
from esports_hub.core.errors import MissingCredentialsError
from esports_hub.services.backend import LocalBackend, SupabaseBackend, create_backend


class TestSupabaseConfig:
    """Tests for SupabaseConfig."""

    def test_values_from_config(self, monkeypatch):
        """Explicit values win over the environment."""
        monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
        config = SupabaseConfig(url="https://abc.supabase.co/", anon_key="anon")

        assert config.get_url() == "https://abc.supabase.co"
        assert config.get_anon_key() == "anon"

    def test_values_from_environment(self, monkeypatch):
        """Missing values fall back to environment variables."""
        monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "env-anon")
        monkeypatch.setenv("SUPABASE_ACCESS_TOKEN", "jwt")
        config = SupabaseConfig()

        assert config.get_url() == "https://env.supabase.co"
        assert config.get_anon_key() == "env-anon"
        assert config.get_access_token() == "jwt"

    def test_missing_credentials(self, monkeypatch):
        """Missing URL or key raises a configuration error with a suggestion."""
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        config = SupabaseConfig()

        with pytest.raises(MissingCredentialsError, match="SUPABASE_URL"):
            config.get_url()
        with pytest.raises(MissingCredentialsError, match="anon key"):
            config.get_anon_key()


class TestHubConfig:
    """Tests for HubConfig."""

    def test_defaults(self):
        """Test default values."""
        config = HubConfig()

        assert config.backend == "supabase"
        assert config.leaderboard.limit == 100
        assert config.leaderboard.default_sort == "total_points"
        assert config.remote_timeout_seconds == 10.0
        assert config.user_id is None

    def test_leaderboard_limit_capped(self):
        """Limits above 100 are rejected."""
        with pytest.raises(pydantic.ValidationError):
            LeaderboardConfig(limit=101)

    def test_unknown_sort_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            LeaderboardConfig(default_sort="headshots")

    def test_timeout_must_be_positive(self):
        with pytest.raises(pydantic.ValidationError):
            HubConfig(remote_timeout_seconds=0)

    def test_timeout_can_be_disabled(self):
        assert HubConfig(remote_timeout_seconds=None).remote_timeout_seconds is None

    def test_blank_user_is_anonymous(self, monkeypatch):
        """Blank user IDs are treated as not signed in."""
        monkeypatch.delenv("ESPORTS_HUB_USER_ID", raising=False)
        config = HubConfig(user_id="  ")

        assert config.user_id is None
        assert config.get_user_id() is None

    def test_user_from_environment(self, monkeypatch):
        monkeypatch.setenv("ESPORTS_HUB_USER_ID", "player-9")

        assert HubConfig().get_user_id() == "player-9"
        assert HubConfig(user_id="player-1").get_user_id() == "player-1"


class TestLoadConfig:
    """Tests for config file loading."""

    def test_load_valid_yaml(self):
        """Test loading a valid YAML config."""
        config_data = {
            "backend": "local",
            "local": {"database_path": "./demo.duckdb"},
            "leaderboard": {"limit": 25, "default_sort": "total_wins"},
            "remote_timeout_seconds": 5,
            "user_id": "player-1",
        }

        with tempfile.NamedTemporaryFile(suffix=".yaml", delete=False, mode="w") as f:
            yaml.dump(config_data, f)
            f.flush()

            config = load_config(f.name)
            assert config.backend == "local"
            assert config.local.database_path == "./demo.duckdb"
            assert config.leaderboard.limit == 25
            assert config.remote_timeout_seconds == 5.0

        Path(f.name).unlink()

    def test_empty_file_gives_defaults(self, tmp_path):
        """An empty YAML file is a valid, all-defaults config."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_config(path) == HubConfig()

    def test_load_missing_file_fails(self):
        """Test loading missing file raises error."""
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/config.yaml")

    def test_invalid_backend_fails(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("backend: firebase\n")

        with pytest.raises(pydantic.ValidationError):
            load_config(path)


class TestCreateBackend:
    """Tests for backend selection."""

    async def test_local(self, tmp_path):
        backend = create_backend(
            HubConfig(backend="local", local={"database_path": str(tmp_path / "x.duckdb")})
        )
        try:
            assert isinstance(backend, LocalBackend)
        finally:
            await backend.close()

    async def test_supabase(self, monkeypatch):
        """Hosted backend takes credentials and timeout from config."""
        monkeypatch.delenv("SUPABASE_ACCESS_TOKEN", raising=False)
        config = HubConfig(
            supabase={"url": "https://abc.supabase.co", "anon_key": "anon"},
            remote_timeout_seconds=3,
        )

        backend = create_backend(config)
        try:
            assert isinstance(backend, SupabaseBackend)
            assert backend.rest_url == "https://abc.supabase.co/rest/v1"
            assert backend.timeout == 3
        finally:
            await backend.close()

    def test_supabase_without_credentials(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)

        with pytest.raises(MissingCredentialsError):
            create_backend(HubConfig())
