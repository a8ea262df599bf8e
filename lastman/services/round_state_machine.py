"""
Round State Machine

    OPEN --lock--> LOCKED --validate--> VALIDATED

The transition table is the single source of truth for which operation is
legal from which status. Anything outside it raises InvalidStateTransition.
The status write is a compare-and-set on the prior status, so a duplicate
concurrent call that loses the race fails instead of re-applying effects.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple

from sqlmodel import Session

from lastman.models.round import Round, RoundStatus
from lastman.models.selection import SelectionResult
from lastman.services.elimination_engine import apply_round_results, eliminate_no_picks
from lastman.services.errors import InvalidStateTransition
from lastman.services.league_repository import LeagueRepository
from lastman.services.notification_service import PendingNotification

logger = logging.getLogger(__name__)


class RoundOperation(str, Enum):
    LOCK = "lock"
    VALIDATE = "validate"


TRANSITIONS: Dict[Tuple[RoundStatus, RoundOperation], RoundStatus] = {
    (RoundStatus.OPEN, RoundOperation.LOCK): RoundStatus.LOCKED,
    (RoundStatus.LOCKED, RoundOperation.VALIDATE): RoundStatus.VALIDATED,
}

# Statuses in which fixtures may still be created or scored
FIXTURE_EDITABLE_STATUSES = (RoundStatus.OPEN, RoundStatus.LOCKED)


@dataclass
class RoundTransitionResult:
    round_id: int
    round_number: int
    status: RoundStatus
    eliminated_user_ids: List[str] = field(default_factory=list)
    resolved: Dict[int, SelectionResult] = field(default_factory=dict)
    pending_selection_ids: List[int] = field(default_factory=list)
    notifications: List[PendingNotification] = field(default_factory=list)


def next_status(current, operation: RoundOperation) -> RoundStatus:
    """Target status for `operation` from `current`, or InvalidStateTransition."""
    target = TRANSITIONS.get((RoundStatus(current), operation))
    if target is None:
        raise InvalidStateTransition(
            f"Cannot {operation.value} a round in status {RoundStatus(current).value}"
        )
    return target


def accepts_selections(status) -> bool:
    return RoundStatus(status) == RoundStatus.OPEN


def accepts_fixture_changes(status) -> bool:
    return RoundStatus(status) in FIXTURE_EDITABLE_STATUSES


def _transition(session: Session, round_: Round, operation: RoundOperation):
    """Stage the status compare-and-set; returns (repo, target)."""
    prior = RoundStatus(round_.status)
    target = next_status(prior, operation)
    repo = LeagueRepository(session)
    repo.update_round_status(round_, prior, target)
    return repo, target


def lock(session: Session, round_: Round) -> RoundTransitionResult:
    """
    OPEN -> LOCKED, eliminating every active participant without a pick.

    The status change and the no-pick eliminations commit as one batch.
    """
    try:
        repo, target = _transition(session, round_, RoundOperation.LOCK)
        outcome = eliminate_no_picks(repo, round_)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Round %s (league %s) locked; %d no-pick elimination(s)",
        round_.number,
        round_.league_id,
        len(outcome.eliminated_user_ids),
    )
    return RoundTransitionResult(
        round_id=round_.id,
        round_number=round_.number,
        status=target,
        eliminated_user_ids=outcome.eliminated_user_ids,
        notifications=outcome.notifications,
    )


def validate(session: Session, round_: Round) -> RoundTransitionResult:
    """
    LOCKED -> VALIDATED, applying fixture results and overrides.

    Result writes, LOSS eliminations and the status change commit as one
    batch. The completion check is left to the caller and runs on the
    committed state.
    """
    try:
        repo, target = _transition(session, round_, RoundOperation.VALIDATE)
        outcome = apply_round_results(repo, round_)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Round %s (league %s) validated; %d result(s) applied, %d pending, %d elimination(s)",
        round_.number,
        round_.league_id,
        len(outcome.resolved),
        len(outcome.pending_selection_ids),
        len(outcome.eliminated_user_ids),
    )
    return RoundTransitionResult(
        round_id=round_.id,
        round_number=round_.number,
        status=target,
        eliminated_user_ids=outcome.eliminated_user_ids,
        resolved=outcome.resolved,
        pending_selection_ids=outcome.pending_selection_ids,
        notifications=outcome.notifications,
    )
