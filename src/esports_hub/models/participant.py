import uuid
from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .tournament import utc_now


class Participant(SQLModel, table=True):
    """A user's entry in a tournament; at most one per (tournament, user)."""

    __tablename__ = "tournament_participants"
    __table_args__ = (UniqueConstraint("tournament_id", "user_id"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    tournament_id: str = Field(index=True)
    user_id: str = Field(index=True)
    joined_at: datetime = Field(default_factory=utc_now)
    placement: int | None = None  # filled in after the tournament
    points_earned: int = 0
