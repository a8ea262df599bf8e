"""
Elimination Engine

Applies pick outcomes to participants:

1. No-pick pass at lock time: active participants without a selection are
   eliminated (NO_PICK) at the round's number.
2. Result pass at validation: each selection on a FINISHED fixture is
   resolved (an admin override always wins), persisted, and a non-WIN
   eliminates the participant (LOSS) unless they were already out.
3. Per-user recalculation after overrides: history is replayed in round
   order and the participant's elimination fields rewritten to match, which
   can eliminate or resurrect.

All functions only stage writes on the repository's session. The caller
commits them together with the round status change.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from lastman.models.admin_override import AdminOverride
from lastman.models.fixture import Fixture, FixtureStatus
from lastman.models.participant import EliminationReason, Participant
from lastman.models.round import Round
from lastman.models.selection import Selection, SelectionResult
from lastman.services.errors import NotFound
from lastman.services.league_repository import LeagueRepository
from lastman.services.notification_service import PendingNotification, elimination_notice
from lastman.services.result_resolver import is_elimination, is_survival, resolve_result

logger = logging.getLogger(__name__)


@dataclass
class EliminationOutcome:
    """What a pass changed. `notifications` are dispatched after commit."""

    eliminated_user_ids: List[str] = field(default_factory=list)
    resolved: Dict[int, SelectionResult] = field(default_factory=dict)  # selection_id -> result
    pending_selection_ids: List[int] = field(default_factory=list)
    notifications: List[PendingNotification] = field(default_factory=list)


def eliminate_no_picks(repo: LeagueRepository, round_: Round) -> EliminationOutcome:
    """Eliminate every active participant with no selection in round_."""
    outcome = EliminationOutcome()
    picked_user_ids = {s.user_id for s in repo.list_selections(round_.league_id, round_.id)}

    for participant in repo.list_active_participants(round_.league_id):
        if participant.user_id in picked_user_ids:
            continue
        participant.mark_eliminated(round_.number, EliminationReason.NO_PICK)
        repo.update_participant(participant)
        outcome.eliminated_user_ids.append(participant.user_id)
        outcome.notifications.append(
            elimination_notice(round_.league_id, participant.user_id, EliminationReason.NO_PICK, round_.number)
        )

    return outcome


def effective_result(
    selection: Selection,
    fixture: Optional[Fixture],
    override: Optional[AdminOverride],
) -> Optional[SelectionResult]:
    """
    Resolved result for a selection, or None while its fixture is unfinished.

    An override replaces the computed result entirely, but only once the
    fixture has finished.
    """
    if fixture is None or fixture.status != FixtureStatus.FINISHED:
        return None
    if fixture.home_score is None or fixture.away_score is None:
        logger.warning("Fixture %s is FINISHED without both scores; leaving selection %s pending", fixture.id, selection.id)
        return None
    if override is not None:
        return SelectionResult(override.override_result)
    return resolve_result(fixture, selection.selected_team_id)


def apply_round_results(repo: LeagueRepository, round_: Round) -> EliminationOutcome:
    """
    Resolve and persist every selection of round_, eliminating non-winners.

    Selections on fixtures that have not finished stay pending; this never
    blocks validation. An already-eliminated participant keeps the round of
    their original elimination.
    """
    outcome = EliminationOutcome()
    league_id = round_.league_id

    selections = repo.list_selections(league_id, round_.id)
    fixtures = repo.list_fixtures(league_id, round_.id)
    overrides = repo.overrides_by_selection(league_id, round_.id)

    for selection in selections:
        result = effective_result(selection, fixtures.get(selection.fixture_id), overrides.get(selection.id))
        if result is None:
            outcome.pending_selection_ids.append(selection.id)
            continue

        repo.update_selection_result(selection, result)
        outcome.resolved[selection.id] = result

        if is_survival(result):
            continue

        participant = repo.get_participant(league_id, selection.user_id)
        if participant is None or participant.eliminated:
            continue

        participant.mark_eliminated(round_.number, EliminationReason.LOSS)
        repo.update_participant(participant)
        outcome.eliminated_user_ids.append(participant.user_id)
        outcome.notifications.append(
            elimination_notice(league_id, participant.user_id, EliminationReason.LOSS, round_.number, result)
        )

    return outcome


def first_losing_round(repo: LeagueRepository, league_id: int, user_id: str) -> Optional[int]:
    """Number of the first round (ascending) whose selection result is LOSS or DRAW."""
    selections_by_round = repo.list_user_selections(league_id, user_id)
    for round_ in repo.list_rounds(league_id):
        selection = selections_by_round.get(round_.id)
        if selection is not None and is_elimination(selection.result):
            return round_.number
    return None


def recalculate_for_user(repo: LeagueRepository, league_id: int, user_id: str) -> bool:
    """
    Rewrite a participant's elimination state from their selection history.

    The elimination is the earlier of the first round with a LOSS/DRAW result
    (reason LOSS) and the participant's missed_pick_round (reason NO_PICK).
    Neither means the user is alive. ADMIN eliminations are left as they are.

    Returns True if the participant row changed.
    """
    participant = repo.get_participant(league_id, user_id)
    if participant is None:
        raise NotFound(f"User {user_id} is not a participant in league {league_id}")

    if participant.eliminated and participant.eliminated_reason == EliminationReason.ADMIN:
        return False

    before = _elimination_state(participant)
    losing_round = first_losing_round(repo, league_id, user_id)
    missed_round = participant.missed_pick_round

    if missed_round is not None and (losing_round is None or missed_round <= losing_round):
        participant.mark_eliminated(missed_round, EliminationReason.NO_PICK)
    elif losing_round is not None:
        participant.mark_eliminated(losing_round, EliminationReason.LOSS)
    else:
        participant.mark_alive()

    changed = _elimination_state(participant) != before
    if changed:
        repo.update_participant(participant)
        logger.info(
            "Recalculated user %s in league %s: %s -> %s",
            user_id,
            league_id,
            before,
            _elimination_state(participant),
        )
    return changed


def _elimination_state(participant: Participant):
    reason = participant.eliminated_reason
    return (
        participant.eliminated,
        participant.eliminated_at_round,
        EliminationReason(reason).value if reason else None,
    )
