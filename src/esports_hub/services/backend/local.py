"""Embedded DuckDB backend using SQLModel, for dry runs and integration tests."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import TypeVar

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlmodel import Session, SQLModel, col, create_engine, func, select

from esports_hub.core.errors import RemoteError, RemoteWriteConflict
from esports_hub.models import (
    Participant,
    PlayerStatistic,
    Tournament,
    TournamentDraft,
    utc_now,
)
from esports_hub.ranking import SortKey
from esports_hub.services.backend.base import (
    ChangeEvent,
    ChangeFeed,
    TournamentBackend,
    TournamentOrder,
)

logger = structlog.get_logger()

T = TypeVar("T")

_DUPLICATE_JOIN = (
    'duplicate key value violates unique constraint "tournament_participants_tournament_id_user_id_key"'
)


def _naive_utc(value: datetime) -> datetime:
    """DuckDB TIMESTAMP columns hold naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class LocalBackend(TournamentBackend):
    """Tournament store on a local DuckDB file.

    Enforces the same rules the hosted store does: one participant row per
    (tournament, user) and no joins beyond ``max_participants``. Writes to
    the tournaments table are announced on every open ``tournaments`` feed.
    """

    def __init__(self, database_path: str | Path) -> None:
        """Open (and create if needed) the database.

        Args:
            database_path: DuckDB file path.
        """
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        # NullPool: one connection per session, opened on the worker thread
        self._engine = create_engine(f"duckdb:///{self.database_path}", poolclass=NullPool)
        SQLModel.metadata.create_all(self._engine)
        self._write_lock = asyncio.Lock()
        self._feeds: dict[str, list[ChangeFeed]] = defaultdict(list)
        logger.info("local_backend_init", path=str(self.database_path))

    async def _run_session(self, fn: Callable[[Session], T]) -> T:
        """Run a sync function inside a Session on a worker thread.

        Database errors surface as ``RemoteError`` so callers handle them like
        any other store failure.
        """

        def _run() -> T:
            with Session(self._engine) as session:
                return fn(session)

        try:
            return await asyncio.to_thread(_run)
        except IntegrityError as e:
            logger.warning("local_backend_constraint_violation", error=str(e.orig or e))
            raise RemoteWriteConflict(str(e.orig or e), code="integrity") from e
        except SQLAlchemyError as e:
            logger.error("local_backend_error", error=str(e))
            raise RemoteError(str(e), code="database") from e

    async def _run_write(self, fn: Callable[[Session], T]) -> T:
        """Run a write; writes are serialized so check-then-insert stays atomic."""
        async with self._write_lock:
            return await self._run_session(fn)

    def _notify(self, table: str, event_type: str) -> None:
        feeds = [feed for feed in self._feeds[table] if not feed.closed]
        self._feeds[table] = feeds
        for feed in feeds:
            feed.publish(ChangeEvent(table=table, event_type=event_type))

    # ==================== Seeding ====================

    async def seed(
        self,
        tournaments: Iterable[Tournament] = (),
        profiles: Iterable[PlayerStatistic] = (),
    ) -> None:
        """Insert fixture rows directly, bypassing admin checks."""
        rows: list[SQLModel] = [*tournaments, *profiles]

        def _seed(session: Session) -> None:
            for row in rows:
                for name in ("start_date", "end_date", "created_at", "updated_at"):
                    value = getattr(row, name, None)
                    if isinstance(value, datetime):
                        setattr(row, name, _naive_utc(value))
                session.merge(row)
            session.commit()

        await self._run_write(_seed)
        if any(isinstance(row, Tournament) for row in rows):
            self._notify("tournaments", "INSERT")

    # ==================== Queries ====================

    async def fetch_tournaments(self, order: TournamentOrder = "start_date") -> list[Tournament]:
        def _get(session: Session) -> list[Tournament]:
            if order == "created_at":
                statement = select(Tournament).order_by(col(Tournament.created_at).desc())
            else:
                statement = select(Tournament).order_by(col(Tournament.start_date).asc())
            return list(session.exec(statement).all())

        return await self._run_session(_get)

    async def fetch_participations(self, user_id: str) -> list[Participant]:
        def _get(session: Session) -> list[Participant]:
            statement = select(Participant).where(Participant.user_id == user_id)
            return list(session.exec(statement).all())

        return await self._run_session(_get)

    async def fetch_leaderboard(self, sort_key: SortKey, limit: int) -> list[PlayerStatistic]:
        column = getattr(PlayerStatistic, SortKey.parse(sort_key).value)

        def _get(session: Session) -> list[PlayerStatistic]:
            statement = select(PlayerStatistic).order_by(col(column).desc()).limit(limit)
            return list(session.exec(statement).all())

        return await self._run_session(_get)

    async def fetch_profile(self, user_id: str) -> PlayerStatistic | None:
        def _get(session: Session) -> PlayerStatistic | None:
            return session.get(PlayerStatistic, user_id)

        return await self._run_session(_get)

    # ==================== Mutations ====================

    async def insert_participant(self, tournament_id: str, user_id: str) -> Participant:
        def _insert(session: Session) -> Participant:
            tournament = session.get(Tournament, tournament_id)
            if tournament is None:
                msg = (
                    'insert or update on table "tournament_participants" violates '
                    'foreign key constraint "tournament_participants_tournament_id_fkey"'
                )
                raise RemoteWriteConflict(msg, code="23503")

            existing = session.exec(
                select(Participant).where(
                    Participant.tournament_id == tournament_id,
                    Participant.user_id == user_id,
                )
            ).first()
            if existing is not None:
                raise RemoteWriteConflict(_DUPLICATE_JOIN, code="23505")

            joined = session.exec(
                select(func.count())
                .select_from(Participant)
                .where(Participant.tournament_id == tournament_id)
            ).one()
            if joined >= tournament.max_participants:
                raise RemoteWriteConflict("Tournament is full", code="23514")

            participant = Participant(
                tournament_id=tournament_id,
                user_id=user_id,
                joined_at=_naive_utc(utc_now()),
            )
            session.add(participant)
            session.commit()
            session.refresh(participant)
            return participant

        participant = await self._run_write(_insert)
        logger.info("participant_inserted", tournament_id=tournament_id, user_id=user_id)
        return participant

    async def delete_participant(self, tournament_id: str, user_id: str) -> None:
        def _delete(session: Session) -> int:
            rows = session.exec(
                select(Participant).where(
                    Participant.tournament_id == tournament_id,
                    Participant.user_id == user_id,
                )
            ).all()
            for row in rows:
                session.delete(row)
            session.commit()
            return len(rows)

        deleted = await self._run_write(_delete)
        logger.info(
            "participant_deleted", tournament_id=tournament_id, user_id=user_id, rows=deleted
        )

    async def insert_tournament(self, draft: TournamentDraft, created_by: str) -> Tournament:
        data = draft.to_row()
        data["start_date"] = _naive_utc(draft.start_date)
        data["end_date"] = _naive_utc(draft.end_date)

        def _insert(session: Session) -> Tournament:
            now = _naive_utc(utc_now())
            tournament = Tournament(**data, created_by=created_by, created_at=now, updated_at=now)
            session.add(tournament)
            session.commit()
            session.refresh(tournament)
            return tournament

        tournament = await self._run_write(_insert)
        self._notify("tournaments", "INSERT")
        return tournament

    async def update_tournament(self, tournament_id: str, draft: TournamentDraft) -> Tournament:
        data = draft.to_row()
        data["start_date"] = _naive_utc(draft.start_date)
        data["end_date"] = _naive_utc(draft.end_date)

        def _update(session: Session) -> Tournament:
            tournament = session.get(Tournament, tournament_id)
            if tournament is None:
                msg = f"Tournament {tournament_id} not found"
                raise RemoteWriteConflict(msg, code="not_found")
            for key, value in data.items():
                setattr(tournament, key, value)
            tournament.updated_at = _naive_utc(utc_now())
            session.add(tournament)
            session.commit()
            session.refresh(tournament)
            return tournament

        tournament = await self._run_write(_update)
        self._notify("tournaments", "UPDATE")
        return tournament

    async def delete_tournament(self, tournament_id: str) -> None:
        def _delete(session: Session) -> None:
            participants = session.exec(
                select(Participant).where(Participant.tournament_id == tournament_id)
            ).all()
            for participant in participants:
                session.delete(participant)
            tournament = session.get(Tournament, tournament_id)
            if tournament is not None:
                session.delete(tournament)
            session.commit()

        await self._run_write(_delete)
        self._notify("tournaments", "DELETE")

    # ==================== Change feed ====================

    async def subscribe(self, table: str) -> ChangeFeed:
        feed = ChangeFeed(table)
        self._feeds[table].append(feed)
        logger.debug("local_feed_opened", table=table)
        return feed

    async def close(self) -> None:
        for feeds in self._feeds.values():
            for feed in feeds:
                await feed.close()
        self._feeds.clear()
        self._engine.dispose()
