import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import field_validator, model_validator
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Interpret naive timestamps (as stored by DuckDB) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TournamentStatus(StrEnum):
    """Admin-set lifecycle status; never derived from dates."""

    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Tournament(SQLModel, table=True):
    """A tournament users can join until it ends or is cancelled."""

    __tablename__ = "tournaments"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str
    description: str | None = None
    start_date: datetime = Field(index=True)
    end_date: datetime
    max_participants: int = 100
    prize_pool: str | None = None
    status: str = Field(default=TournamentStatus.UPCOMING.value, index=True)
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    def has_ended(self, now: datetime) -> bool:
        return as_utc(self.end_date) <= as_utc(now)

    def is_joinable(self, now: datetime) -> bool:
        """Whether a join may be attempted at ``now``.

        Args:
            now: Evaluation time.

        Returns:
            True unless the tournament is cancelled or has already ended.
        """
        return self.status != TournamentStatus.CANCELLED and not self.has_ended(now)


class TournamentDraft(SQLModel):
    """Admin create/update payload for a tournament."""

    name: str = Field(min_length=1)
    description: str | None = None
    start_date: datetime
    end_date: datetime
    max_participants: int = Field(default=100, ge=1)
    prize_pool: str | None = None
    status: TournamentStatus = TournamentStatus.UPCOMING

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            msg = "Tournament name cannot be empty"
            raise ValueError(msg)
        return v.strip()

    @model_validator(mode="after")
    def validate_dates(self) -> "TournamentDraft":
        if as_utc(self.end_date) < as_utc(self.start_date):
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self

    def to_row(self) -> dict:
        """Serialize for a tournaments insert/update."""
        data = self.model_dump()
        data["status"] = self.status.value
        return data
