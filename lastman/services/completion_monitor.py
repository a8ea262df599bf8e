"""
League Completion Monitor

A league completes when no participant is left active. The winners are the
participants knocked out by a LOSS in the league's highest-numbered round:
everyone who fell in that final round went furthest and shares the win.
NO_PICK and ADMIN eliminations never win, even in the final round.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from sqlmodel import Session

from lastman.models.league import LeagueStatus
from lastman.models.participant import EliminationReason
from lastman.services.league_repository import LeagueRepository
from lastman.services.notification_service import PendingNotification, winner_notice

logger = logging.getLogger(__name__)


@dataclass
class CompletionOutcome:
    completed: bool = False
    reopened: bool = False
    last_round_number: int = 0
    winner_user_ids: List[str] = field(default_factory=list)
    notifications: List[PendingNotification] = field(default_factory=list)


def check_completion(session: Session, league_id: int) -> CompletionOutcome:
    """
    Complete the league if zero participants remain active.

    Safe to call at any time. Only an ACTIVE league can complete, so winners
    are never recorded twice. Winner rows and the status change commit as
    one batch.
    """
    repo = LeagueRepository(session)
    league = repo.require_league(league_id)
    outcome = CompletionOutcome()

    if league.status != LeagueStatus.ACTIVE:
        return outcome

    participants = repo.list_participants(league_id)
    if any(not p.eliminated for p in participants):
        return outcome

    last_round_number = repo.last_round_number(league_id)
    outcome.last_round_number = last_round_number

    try:
        for participant in participants:
            if (
                participant.eliminated_reason == EliminationReason.LOSS
                and participant.eliminated_at_round == last_round_number
            ):
                repo.add_winner(league_id, participant.user_id)
                outcome.winner_user_ids.append(participant.user_id)
        repo.update_league_status(league, LeagueStatus.COMPLETED)
        session.commit()
    except Exception:
        session.rollback()
        raise

    outcome.completed = True
    outcome.notifications = [winner_notice(league_id, user_id) for user_id in outcome.winner_user_ids]
    logger.info(
        "League %s completed after round %s; winners: %s",
        league_id,
        last_round_number,
        ", ".join(outcome.winner_user_ids) or "none",
    )
    return outcome


def reconcile_completion(session: Session, league_id: int) -> CompletionOutcome:
    """
    Bring league status back in line with participant state after history
    has been rewritten.

    A COMPLETED league with an active participant again is reopened and its
    winner rows retracted. An ACTIVE league with nobody left is completed.
    """
    repo = LeagueRepository(session)
    league = repo.require_league(league_id)

    if league.status == LeagueStatus.COMPLETED:
        if not repo.list_active_participants(league_id):
            return CompletionOutcome()
        try:
            retracted = repo.delete_winners(league_id)
            repo.update_league_status(league, LeagueStatus.ACTIVE)
            session.commit()
        except Exception:
            session.rollback()
            raise
        logger.info("League %s reopened; %d winner record(s) retracted", league_id, retracted)
        return CompletionOutcome(reopened=True)

    if league.status == LeagueStatus.ACTIVE:
        return check_completion(session, league_id)

    return CompletionOutcome()
