"""
League ownership and round-status guards.

Every admin entry point calls require_league_owner before doing anything
else. Guards raise lastman.services.errors exceptions, never HTTP ones.
"""

from typing import Optional

from sqlmodel import Session

from lastman.models.league import League, LeagueStatus
from lastman.models.round import Round
from lastman.services.errors import InvalidStateTransition, NotFound, PermissionDenied, Unauthenticated


def require_caller(caller_id: Optional[str]) -> str:
    if not caller_id or not caller_id.strip():
        raise Unauthenticated("User not authenticated")
    return caller_id.strip()


def get_league_or_404(session: Session, league_id: int) -> League:
    league = session.get(League, league_id)
    if not league:
        raise NotFound(f"League {league_id} not found")
    return league


def require_league_owner(session: Session, league_id: int, caller_id: Optional[str]) -> League:
    """
    Require that the caller owns the league.

    Raises:
        Unauthenticated: no caller identity
        NotFound: league does not exist
        PermissionDenied: caller is not the league owner
    """
    caller_id = require_caller(caller_id)
    league = get_league_or_404(session, league_id)
    if league.owner_id != caller_id:
        raise PermissionDenied("Only the league owner can perform this action")
    return league


def require_active_league(league: League) -> League:
    if league.status != LeagueStatus.ACTIVE:
        raise InvalidStateTransition(f"League {league.id} is {LeagueStatus(league.status).value}, not ACTIVE")
    return league


def get_round_or_404(session: Session, league_id: int, round_id: int) -> Round:
    round_ = session.get(Round, round_id)
    if not round_ or round_.league_id != league_id:
        raise NotFound(f"Round {round_id} not found in league {league_id}")
    return round_
