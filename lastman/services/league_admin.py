"""
Admin operations on a league.

One entry point per admin action. Each one authorizes the caller as the
league owner, runs its batch, then dispatches the notifications produced
by that batch. Completion checks run as a follow-up step on committed state.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlmodel import Session

from lastman.models.participant import EliminationReason, Participant
from lastman.models.selection import SelectionResult
from lastman.services import completion_monitor, override_service, round_state_machine
from lastman.services.errors import NotFound, ValidationError
from lastman.services.league_repository import LeagueRepository
from lastman.services.notification_service import (
    AUDIENCE_ALL_PLAYERS,
    AUDIENCE_UNPICKED,
    NotificationSink,
    admin_messages,
    dispatch_notifications,
    elimination_notice,
)
from lastman.utils.league_guards import get_round_or_404, require_league_owner

logger = logging.getLogger(__name__)


@dataclass
class AdminActionResult:
    message: str
    eliminated_user_ids: List[str] = field(default_factory=list)
    league_completed: bool = False
    league_reopened: bool = False
    winner_user_ids: List[str] = field(default_factory=list)
    notifications_sent: int = 0


def lock_round(
    session: Session, sink: NotificationSink, league_id: int, round_id: int, caller_id: Optional[str]
) -> AdminActionResult:
    require_league_owner(session, league_id, caller_id)
    round_ = get_round_or_404(session, league_id, round_id)

    transition = round_state_machine.lock(session, round_)
    sent = dispatch_notifications(sink, transition.notifications)

    return AdminActionResult(
        message="Round locked, no-picks eliminated",
        eliminated_user_ids=transition.eliminated_user_ids,
        notifications_sent=sent,
    )


def validate_round(
    session: Session, sink: NotificationSink, league_id: int, round_id: int, caller_id: Optional[str]
) -> AdminActionResult:
    require_league_owner(session, league_id, caller_id)
    round_ = get_round_or_404(session, league_id, round_id)

    transition = round_state_machine.validate(session, round_)
    sent = dispatch_notifications(sink, transition.notifications)

    completion = completion_monitor.check_completion(session, league_id)
    sent += dispatch_notifications(sink, completion.notifications)

    return AdminActionResult(
        message="Round validated",
        eliminated_user_ids=transition.eliminated_user_ids,
        league_completed=completion.completed,
        winner_user_ids=completion.winner_user_ids,
        notifications_sent=sent,
    )


def override_selection_result(
    session: Session,
    sink: NotificationSink,
    league_id: int,
    round_id: int,
    selection_id: int,
    result: SelectionResult,
    reason: str,
    caller_id: Optional[str],
) -> AdminActionResult:
    admin_id = require_league_owner(session, league_id, caller_id).owner_id
    round_ = get_round_or_404(session, league_id, round_id)
    if not reason or not reason.strip():
        raise ValidationError("An override reason is required")

    repo = LeagueRepository(session)
    selection = repo.get_selection(league_id, round_id, selection_id)
    if not selection:
        raise NotFound(f"Selection {selection_id} not found in round {round_id}")

    outcome = override_service.create_override(session, round_, selection, result, reason.strip(), admin_id)

    action = AdminActionResult(message="Result override applied" if outcome.recalculated else "Result override recorded")
    if outcome.recalculated:
        _reconcile(session, sink, league_id, action)
    return action


def reverse_override(
    session: Session,
    sink: NotificationSink,
    league_id: int,
    round_id: int,
    override_id: int,
    caller_id: Optional[str],
) -> AdminActionResult:
    require_league_owner(session, league_id, caller_id)
    round_ = get_round_or_404(session, league_id, round_id)

    override = LeagueRepository(session).get_override(league_id, round_id, override_id)
    if not override:
        raise NotFound(f"Override {override_id} not found")

    override_service.reverse_override(session, round_, override)

    action = AdminActionResult(message="Override reversed")
    _reconcile(session, sink, league_id, action)
    return action


def manually_eliminate_participant(
    session: Session,
    sink: NotificationSink,
    league_id: int,
    participant_id: int,
    round_number: int,
    caller_id: Optional[str],
) -> AdminActionResult:
    """Unconditionally mark a participant eliminated (ADMIN) at round_number."""
    require_league_owner(session, league_id, caller_id)
    if round_number < 1:
        raise ValidationError("round_number must be >= 1")

    repo = LeagueRepository(session)
    participant: Optional[Participant] = repo.get_participant_by_id(league_id, participant_id)
    if not participant:
        raise NotFound(f"Participant {participant_id} not found")

    try:
        participant.mark_eliminated(round_number, EliminationReason.ADMIN)
        repo.update_participant(participant)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Participant %s (user %s) eliminated by admin at round %s", participant_id, participant.user_id, round_number)
    sent = dispatch_notifications(
        sink, [elimination_notice(league_id, participant.user_id, EliminationReason.ADMIN, round_number)]
    )

    completion = completion_monitor.check_completion(session, league_id)
    sent += dispatch_notifications(sink, completion.notifications)

    return AdminActionResult(
        message="Player eliminated successfully",
        eliminated_user_ids=[participant.user_id],
        league_completed=completion.completed,
        winner_user_ids=completion.winner_user_ids,
        notifications_sent=sent,
    )


def send_manual_notification(
    session: Session,
    sink: NotificationSink,
    league_id: int,
    audience: str,
    title: str,
    message: str,
    caller_id: Optional[str],
    round_id: Optional[int] = None,
) -> AdminActionResult:
    """Send an ADMIN_MESSAGE to every player, or to active players yet to pick in round_id."""
    require_league_owner(session, league_id, caller_id)
    repo = LeagueRepository(session)

    if audience == AUDIENCE_ALL_PLAYERS:
        user_ids = [p.user_id for p in repo.list_participants(league_id)]
    elif audience == AUDIENCE_UNPICKED:
        if round_id is None:
            raise ValidationError("round_id is required when audience is UNPICKED")
        get_round_or_404(session, league_id, round_id)
        picked = {s.user_id for s in repo.list_selections(league_id, round_id)}
        user_ids = [p.user_id for p in repo.list_active_participants(league_id) if p.user_id not in picked]
    else:
        raise ValidationError(f"Invalid audience {audience!r}. Must be ALL_PLAYERS or UNPICKED")

    sent = dispatch_notifications(sink, admin_messages(league_id, user_ids, title, message))
    return AdminActionResult(
        message=f"Notification sent to {sent} player(s)",
        notifications_sent=sent,
    )


def _reconcile(session: Session, sink: NotificationSink, league_id: int, action: AdminActionResult) -> None:
    completion = completion_monitor.reconcile_completion(session, league_id)
    action.league_completed = completion.completed
    action.league_reopened = completion.reopened
    action.winner_user_ids = completion.winner_user_ids
    action.notifications_sent += dispatch_notifications(sink, completion.notifications)
