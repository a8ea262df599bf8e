"""
Persistence accessors for the round engine.

Every method reads fresh from the session (no process-wide cache). Write
methods only stage changes with session.add/delete; the calling operation
owns the commit so that all of its writes land as one batch.
"""

from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from lastman.models.admin_override import AdminOverride
from lastman.models.fixture import Fixture
from lastman.models.league import League, LeagueStatus
from lastman.models.league_winner import LeagueWinner
from lastman.models.participant import Participant
from lastman.models.round import Round, RoundStatus
from lastman.models.selection import Selection, SelectionResult
from lastman.services.errors import (
    DuplicateSelection,
    EliminatedParticipant,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)
from lastman.utils.league_guards import require_active_league
from lastman.utils.timestamps import utcnow


class LeagueRepository:
    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Leagues
    # ------------------------------------------------------------------

    def get_league(self, league_id: int) -> Optional[League]:
        return self.session.get(League, league_id)

    def require_league(self, league_id: int) -> League:
        league = self.get_league(league_id)
        if not league:
            raise NotFound(f"League {league_id} not found")
        return league

    def get_league_by_invite_code(self, invite_code: str) -> Optional[League]:
        return self.session.exec(select(League).where(League.invite_code == invite_code)).first()

    def update_league_status(self, league: League, status: LeagueStatus) -> None:
        league.status = status
        league.updated_at = utcnow()
        self.session.add(league)

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------

    def get_round(self, league_id: int, round_id: int) -> Optional[Round]:
        round_ = self.session.get(Round, round_id)
        if not round_ or round_.league_id != league_id:
            return None
        return round_

    def require_round(self, league_id: int, round_id: int) -> Round:
        round_ = self.get_round(league_id, round_id)
        if not round_:
            raise NotFound(f"Round {round_id} not found in league {league_id}")
        return round_

    def list_rounds(self, league_id: int) -> List[Round]:
        return list(self.session.exec(select(Round).where(Round.league_id == league_id).order_by(Round.number)).all())

    def last_round_number(self, league_id: int) -> int:
        """Highest round number created for the league, 0 if none."""
        value = self.session.exec(select(func.max(Round.number)).where(Round.league_id == league_id)).one()
        return value or 0

    def update_round_status(self, round_: Round, expected: RoundStatus, target: RoundStatus) -> None:
        """
        Compare-and-set the round status.

        The UPDATE only matches while the row still holds `expected`; a
        concurrent transition that got there first leaves zero rows matched
        and this call raises InvalidStateTransition instead of applying twice.
        """
        result = self.session.exec(
            update(Round)
            .where(Round.id == round_.id, Round.status == expected.value)
            .values(status=target.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateTransition(
                f"Round {round_.number} is no longer {expected.value}; cannot move to {target.value}"
            )
        round_.status = target

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def get_participant(self, league_id: int, user_id: str) -> Optional[Participant]:
        return self.session.exec(
            select(Participant).where(Participant.league_id == league_id, Participant.user_id == user_id)
        ).first()

    def get_participant_by_id(self, league_id: int, participant_id: int) -> Optional[Participant]:
        participant = self.session.get(Participant, participant_id)
        if not participant or participant.league_id != league_id:
            return None
        return participant

    def list_participants(self, league_id: int) -> List[Participant]:
        return list(
            self.session.exec(
                select(Participant)
                .where(Participant.league_id == league_id)
                .order_by(Participant.joined_at, Participant.id)
            ).all()
        )

    def list_active_participants(self, league_id: int) -> List[Participant]:
        return list(
            self.session.exec(
                select(Participant)
                .where(Participant.league_id == league_id, Participant.eliminated == False)  # noqa: E712
                .order_by(Participant.id)
            ).all()
        )

    def update_participant(self, participant: Participant) -> None:
        self.session.add(participant)

    # ------------------------------------------------------------------
    # Fixtures
    # ------------------------------------------------------------------

    def get_fixture(self, league_id: int, round_id: int, fixture_id: int) -> Optional[Fixture]:
        fixture = self.session.get(Fixture, fixture_id)
        if not fixture or fixture.league_id != league_id or fixture.round_id != round_id:
            return None
        return fixture

    def list_fixtures(self, league_id: int, round_id: int) -> Dict[int, Fixture]:
        fixtures = self.session.exec(
            select(Fixture).where(Fixture.league_id == league_id, Fixture.round_id == round_id)
        ).all()
        return {f.id: f for f in fixtures}

    # ------------------------------------------------------------------
    # Selections
    # ------------------------------------------------------------------

    def list_selections(self, league_id: int, round_id: int) -> List[Selection]:
        return list(
            self.session.exec(
                select(Selection)
                .where(Selection.league_id == league_id, Selection.round_id == round_id)
                .order_by(Selection.id)
            ).all()
        )

    def get_selection(self, league_id: int, round_id: int, selection_id: int) -> Optional[Selection]:
        selection = self.session.get(Selection, selection_id)
        if not selection or selection.league_id != league_id or selection.round_id != round_id:
            return None
        return selection

    def get_user_selection(self, round_id: int, user_id: str) -> Optional[Selection]:
        return self.session.exec(
            select(Selection).where(Selection.round_id == round_id, Selection.user_id == user_id)
        ).first()

    def list_user_selections(self, league_id: int, user_id: str) -> Dict[int, Selection]:
        """User's selections in the league, keyed by round id."""
        selections = self.session.exec(
            select(Selection).where(Selection.league_id == league_id, Selection.user_id == user_id)
        ).all()
        return {s.round_id: s for s in selections}

    def create_selection(
        self,
        round_: Round,
        user_id: str,
        fixture_id: int,
        selected_team_id: str,
        selected_team_name: Optional[str] = None,
    ) -> Selection:
        """
        Stage a new pick for user_id in round_.

        Raises:
            InvalidStateTransition: league is not ACTIVE, or round is not OPEN
            NotFound: user is not a participant, or fixture not in this round
            EliminatedParticipant: participant already eliminated
            DuplicateSelection: user already picked in this round
            ValidationError: selected team does not play in the fixture
        """
        require_active_league(self.require_league(round_.league_id))
        if round_.status != RoundStatus.OPEN:
            raise InvalidStateTransition(f"Round {round_.number} is not open for selections")

        participant = self.get_participant(round_.league_id, user_id)
        if not participant:
            raise NotFound(f"User {user_id} is not a participant in league {round_.league_id}")
        if participant.eliminated:
            raise EliminatedParticipant(f"User {user_id} has been eliminated from this league")

        if self.get_user_selection(round_.id, user_id):
            raise DuplicateSelection(f"User {user_id} already has a selection for round {round_.number}")

        fixture = self.get_fixture(round_.league_id, round_.id, fixture_id)
        if not fixture:
            raise NotFound(f"Fixture {fixture_id} not found in round {round_.number}")

        if selected_team_id == fixture.home_team_id:
            team_name = fixture.home_team_name
        elif selected_team_id == fixture.away_team_id:
            team_name = fixture.away_team_name
        else:
            raise ValidationError(f"Team {selected_team_id} does not play in fixture {fixture_id}")

        selection = Selection(
            league_id=round_.league_id,
            round_id=round_.id,
            user_id=user_id,
            selected_team_id=selected_team_id,
            selected_team_name=selected_team_name or team_name,
            fixture_id=fixture.id,
        )
        self.session.add(selection)
        try:
            self.session.flush()
        except IntegrityError:
            # Lost a race with a concurrent pick for the same (round, user)
            self.session.rollback()
            raise DuplicateSelection(f"User {user_id} already has a selection for round {round_.number}")
        return selection

    def update_selection_result(self, selection: Selection, result: Optional[SelectionResult]) -> None:
        selection.result = result
        selection.updated_at = utcnow()
        self.session.add(selection)

    # ------------------------------------------------------------------
    # Overrides
    # ------------------------------------------------------------------

    def list_overrides(self, league_id: int, round_id: int) -> List[AdminOverride]:
        return list(
            self.session.exec(
                select(AdminOverride)
                .where(AdminOverride.league_id == league_id, AdminOverride.round_id == round_id)
                .order_by(AdminOverride.id)
            ).all()
        )

    def overrides_by_selection(self, league_id: int, round_id: int) -> Dict[int, AdminOverride]:
        """Active override per selection; the newest row wins if several exist."""
        return {o.selection_id: o for o in self.list_overrides(league_id, round_id)}

    def get_override(self, league_id: int, round_id: int, override_id: int) -> Optional[AdminOverride]:
        override = self.session.get(AdminOverride, override_id)
        if not override or override.league_id != league_id or override.round_id != round_id:
            return None
        return override

    def get_override_by_selection(self, selection_id: int) -> Optional[AdminOverride]:
        return self.session.exec(
            select(AdminOverride)
            .where(AdminOverride.selection_id == selection_id)
            .order_by(AdminOverride.id.desc())
        ).first()

    def create_override(
        self,
        selection: Selection,
        override_result: SelectionResult,
        reason: str,
        created_by: str,
    ) -> AdminOverride:
        override = AdminOverride(
            league_id=selection.league_id,
            round_id=selection.round_id,
            selection_id=selection.id,
            user_id=selection.user_id,
            original_result=selection.result,
            override_result=override_result,
            reason=reason,
            created_by=created_by,
        )
        self.session.add(override)
        return override

    def delete_override(self, override: AdminOverride) -> None:
        self.session.delete(override)

    # ------------------------------------------------------------------
    # Winners
    # ------------------------------------------------------------------

    def list_winners(self, league_id: int) -> List[LeagueWinner]:
        return list(
            self.session.exec(
                select(LeagueWinner).where(LeagueWinner.league_id == league_id).order_by(LeagueWinner.id)
            ).all()
        )

    def add_winner(self, league_id: int, user_id: str) -> LeagueWinner:
        winner = LeagueWinner(league_id=league_id, user_id=user_id)
        self.session.add(winner)
        return winner

    def delete_winners(self, league_id: int) -> int:
        winners = self.list_winners(league_id)
        for winner in winners:
            self.session.delete(winner)
        return len(winners)
