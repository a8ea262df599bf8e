"""
Admin result overrides.

An override may be created in any round status. On a VALIDATED round it is
applied immediately: the selection's result is rewritten and the user's
elimination state replayed. Before validation it simply waits for
validate() to pick it up. Reversal deletes the row and always replays.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlmodel import Session

from lastman.models.admin_override import AdminOverride
from lastman.models.fixture import Fixture
from lastman.models.round import Round, RoundStatus
from lastman.models.selection import Selection, SelectionResult
from lastman.services.elimination_engine import effective_result, recalculate_for_user
from lastman.services.league_repository import LeagueRepository

logger = logging.getLogger(__name__)


@dataclass
class OverrideOutcome:
    override_id: Optional[int]
    selection_id: int
    user_id: str
    selection_result: Optional[SelectionResult]
    recalculated: bool
    participant_changed: bool


def create_override(
    session: Session,
    round_: Round,
    selection: Selection,
    override_result: SelectionResult,
    reason: str,
    admin_id: str,
) -> OverrideOutcome:
    """
    Record an override for `selection`, replacing any earlier one.

    The earlier row's original_result is carried forward so the snapshot
    always holds the pre-override result.
    """
    repo = LeagueRepository(session)
    validated = RoundStatus(round_.status) == RoundStatus.VALIDATED
    changed = False

    try:
        previous = [o for o in repo.list_overrides(round_.league_id, round_.id) if o.selection_id == selection.id]
        original_result = previous[0].original_result if previous else selection.result
        for old in previous:
            repo.delete_override(old)

        override = repo.create_override(selection, override_result, reason, admin_id)
        override.original_result = original_result

        if validated:
            repo.update_selection_result(selection, override_result)
            changed = recalculate_for_user(repo, round_.league_id, selection.user_id)

        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(override)
    logger.info(
        "Override %s on selection %s (user %s, round %s): %s -> %s by %s%s",
        override.id,
        selection.id,
        selection.user_id,
        round_.number,
        original_result,
        override_result,
        admin_id,
        " [applied]" if validated else "",
    )
    return OverrideOutcome(
        override_id=override.id,
        selection_id=selection.id,
        user_id=selection.user_id,
        selection_result=selection.result,
        recalculated=validated,
        participant_changed=changed,
    )


def reverse_override(session: Session, round_: Round, override: AdminOverride) -> OverrideOutcome:
    """
    Delete `override` and replay the affected user's history.

    On a VALIDATED round the selection's result is re-resolved from its
    fixture; if the fixture has not finished, the pre-override snapshot is
    restored instead.
    """
    repo = LeagueRepository(session)
    override_id = override.id
    selection_id = override.selection_id
    user_id = override.user_id
    original_result = override.original_result
    selection = session.get(Selection, selection_id)

    try:
        repo.delete_override(override)
        session.flush()

        if selection is not None and RoundStatus(round_.status) == RoundStatus.VALIDATED:
            fixture = session.get(Fixture, selection.fixture_id)
            remaining = repo.get_override_by_selection(selection_id)
            result = effective_result(selection, fixture, remaining)
            if result is None:
                result = original_result
            repo.update_selection_result(selection, result)

        changed = recalculate_for_user(repo, round_.league_id, user_id)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Override %s reversed for user %s (round %s)", override_id, user_id, round_.number)
    return OverrideOutcome(
        override_id=override_id,
        selection_id=selection_id,
        user_id=user_id,
        selection_result=selection.result if selection is not None else None,
        recalculated=True,
        participant_changed=changed,
    )
