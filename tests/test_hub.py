"""Tests for the EsportsHub facade."""

import pytest

from esports_hub.core.config import HubConfig
from esports_hub.core.errors import (
    InvalidSortKey,
    ParticipationRejected,
    RemoteError,
    RemoteWriteConflict,
)
from esports_hub.hub import EsportsHub, open_hub
from esports_hub.models import TournamentStatus
from esports_hub.ranking import SortKey
from esports_hub.services.backend import LocalBackend


@pytest.fixture
async def hub(backend, make_tournament, make_stat, now):
    backend.tournaments.extend(
        [
            make_tournament("Open Cup"),
            make_tournament("Closed Cup", status=TournamentStatus.CANCELLED),
        ]
    )
    backend.statistics = [make_stat("user-1", points=10), make_stat("admin-1", is_admin=True)]
    hub = EsportsHub(backend)
    hub.machine.clock = lambda: now
    yield hub
    await hub.close()


def by_name(hub, name):
    return next(t for t in hub.tournaments if t.name == name)


class TestCommands:
    """Commands report failures instead of raising."""

    async def test_rejected_join_is_reported(self, hub):
        """Local rejections reach the error reporter with the reason."""
        await hub.sign_in("user-1")
        await hub.mount_tournaments()

        await hub.join_tournament(by_name(hub, "Closed Cup").id)

        assert len(hub.errors) == 1
        assert isinstance(hub.errors[0], ParticipationRejected)
        assert hub.errors[0].message == "Tournament has been cancelled"

    async def test_remote_failure_is_reported_verbatim(self, hub, backend):
        """The store's message is passed through unchanged."""
        await hub.sign_in("user-1")
        await hub.mount_tournaments()
        backend.fail_next("insert_participant", RemoteWriteConflict("Tournament is full"))
        cup = by_name(hub, "Open Cup")

        await hub.join_tournament(cup.id)

        assert [e.message for e in hub.errors] == ["Tournament is full"]
        assert not hub.is_joined(cup.id)

    async def test_custom_reporter(self, backend):
        """A reporter passed in receives failures instead of the default list."""
        reported = []
        hub = EsportsHub(backend, reporter=reported.append)

        await hub.join_tournament("missing")
        await hub.sign_in("user-1")
        await hub.join_tournament("missing")

        assert len(reported) == 1
        assert hub.errors == []

    async def test_spawned_join_and_leave(self, hub, backend):
        """Fire-and-forget commands settle on drain."""
        await hub.sign_in("user-1")
        await hub.mount_tournaments()
        cup = by_name(hub, "Open Cup")

        hub.spawn(hub.join_tournament(cup.id))
        hub.spawn(hub.leave_tournament(cup.id))
        await hub.drain()

        assert not hub.is_joined(cup.id)
        assert hub.errors == []

    async def test_unknown_sort_key_is_reported(self, hub, backend):
        """An unknown leaderboard key is reported and the current key is kept."""
        await hub.set_sort_key("headshots")

        assert len(hub.errors) == 1
        assert isinstance(hub.errors[0], InvalidSortKey)
        assert hub.errors[0].sort_key == "headshots"
        assert hub.leaderboard.sort_key == SortKey.TOTAL_POINTS
        assert backend.count("fetch_leaderboard") == 0

        await hub.set_sort_key("wins")
        assert hub.leaderboard.sort_key == SortKey.TOTAL_WINS
        assert len(hub.errors) == 1


class TestSession:
    """Sign-in, sign-out and view lifecycle."""

    async def test_sign_in_loads_profile_and_participations(self, hub, backend):
        """Signing in while mounted loads the user's rows."""
        await hub.mount_tournaments()
        cup = by_name(hub, "Open Cup")
        backend.participants.add((cup.id, "admin-1"))

        await hub.sign_in("admin-1")

        assert hub.session.is_admin
        assert hub.is_joined(cup.id)

    async def test_profile_failure_still_signs_in(self, hub, backend):
        """A failed profile fetch is reported and leaves the user a non-admin."""
        backend.fail_next("fetch_profile", RemoteError("boom"))

        await hub.sign_in("admin-1")

        assert hub.session.user_id == "admin-1"
        assert not hub.session.is_admin
        assert [e.message for e in hub.errors] == ["boom"]

    async def test_sign_out_clears_participation(self, hub):
        await hub.sign_in("user-1")
        await hub.mount_tournaments()
        cup = by_name(hub, "Open Cup")
        await hub.join_tournament(cup.id)

        hub.sign_out()

        assert not hub.is_joined(cup.id)
        assert not hub.session.is_authenticated

    async def test_unmount_resets_view(self, hub, backend):
        """Leaving the tournament page drops the list and the subscription."""
        await hub.mount_tournaments()

        await hub.unmount_tournaments()

        assert hub.tournaments == []
        assert not hub.reconciliation.mounted
        assert backend.feeds[0].closed

    async def test_close_closes_backend(self, hub, backend):
        await hub.close()

        assert backend.closed


class TestOpenHub:
    """Tests for building a hub from config."""

    async def test_local_backend_with_configured_user(self, tmp_path, monkeypatch):
        """The configured user is signed in against the selected backend."""
        monkeypatch.delenv("ESPORTS_HUB_USER_ID", raising=False)
        config = HubConfig(
            backend="local",
            local={"database_path": str(tmp_path / "hub.duckdb")},
            leaderboard={"limit": 10, "default_sort": "kdr"},
            user_id="player-1",
        )

        hub = await open_hub(config)
        try:
            assert isinstance(hub.backend, LocalBackend)
            assert hub.session.user_id == "player-1"
            assert hub.leaderboard.limit == 10
            assert hub.leaderboard.sort_key == "kdr"
        finally:
            await hub.close()

    async def test_anonymous_when_no_user(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ESPORTS_HUB_USER_ID", raising=False)
        config = HubConfig(backend="local", local={"database_path": str(tmp_path / "h.duckdb")})

        hub = await open_hub(config)
        try:
            assert not hub.session.is_authenticated
        finally:
            await hub.close()


class TestCapacity:
    """Joining a full tournament against the embedded store."""

    async def test_join_beyond_capacity_rolls_back(self, tmp_path, make_tournament, now):
        """The 101st join is refused by the store and the user ends up not joined."""
        local = LocalBackend(tmp_path / "capacity.duckdb")
        cup = make_tournament("Full House", max_participants=100)
        await local.seed(tournaments=[cup])
        for i in range(100):
            await local.insert_participant(cup.id, f"player-{i}")

        hub = EsportsHub(local)
        hub.machine.clock = lambda: now
        try:
            await hub.sign_in("player-100")
            await hub.mount_tournaments()

            await hub.join_tournament(cup.id)

            assert not hub.is_joined(cup.id)
            assert [e.message for e in hub.errors] == ["Tournament is full"]
            assert isinstance(hub.errors[0], RemoteWriteConflict)
        finally:
            await hub.close()
