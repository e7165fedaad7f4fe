from datetime import datetime

from sqlmodel import Field, SQLModel

from .tournament import utc_now


class PlayerStatistic(SQLModel, table=True):
    """Per-player aggregate read by the leaderboard (the ``profiles`` row).

    Maintained by an external process; this package never writes it outside
    of seeding the local backend.
    """

    __tablename__ = "profiles"

    id: str = Field(primary_key=True)
    display_name: str
    avatar_url: str | None = None
    is_admin: bool = False
    total_wins: int = Field(default=0, index=True)
    total_points: int = Field(default=0, index=True)
    kdr: float = Field(default=0.0, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def initial(self) -> str:
        """Avatar fallback letter."""
        return self.display_name[:1].upper()
