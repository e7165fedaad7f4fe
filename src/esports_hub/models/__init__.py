from .match import Match, MatchResult, MatchStatus
from .participant import Participant
from .profile import PlayerStatistic
from .tournament import Tournament, TournamentDraft, TournamentStatus, as_utc, utc_now

__all__ = [
    "Match",
    "MatchResult",
    "MatchStatus",
    "Participant",
    "PlayerStatistic",
    "Tournament",
    "TournamentDraft",
    "TournamentStatus",
    "as_utc",
    "utc_now",
]
