from lastman.models.admin_override import AdminOverride
from lastman.models.fixture import Fixture, FixtureStatus
from lastman.models.league import League, LeagueStatus
from lastman.models.league_winner import LeagueWinner
from lastman.models.notification import Notification, NotificationType
from lastman.models.participant import EliminationReason, Participant
from lastman.models.round import Round, RoundStatus
from lastman.models.selection import Selection, SelectionResult

__all__ = [
    "League",
    "LeagueStatus",
    "Round",
    "RoundStatus",
    "Participant",
    "EliminationReason",
    "Fixture",
    "FixtureStatus",
    "Selection",
    "SelectionResult",
    "AdminOverride",
    "LeagueWinner",
    "Notification",
    "NotificationType",
]
