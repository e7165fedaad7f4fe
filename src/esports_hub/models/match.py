import uuid
from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from .tournament import utc_now


class MatchStatus(StrEnum):
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class Match(SQLModel, table=True):
    """A match within a tournament. Recorded by external tooling."""

    __tablename__ = "matches"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    tournament_id: str = Field(index=True)
    match_number: int
    status: str = MatchStatus.SCHEDULED.value
    started_at: datetime | None = None
    ended_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)


class MatchResult(SQLModel, table=True):
    """One player's line in a match."""

    __tablename__ = "match_results"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    match_id: str = Field(index=True)
    user_id: str = Field(index=True)
    kills: int = 0
    deaths: int = 0
    placement: int
    points: int = 0
