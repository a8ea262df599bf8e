"""Admin entry points: authorization, overrides, manual actions, dispatch."""

import logging

import pytest
from sqlmodel import Session, select

from lastman.models.admin_override import AdminOverride
from lastman.models.league import League, LeagueStatus
from lastman.models.league_winner import LeagueWinner
from lastman.models.notification import NotificationType
from lastman.models.participant import EliminationReason
from lastman.models.round import Round, RoundStatus
from lastman.models.selection import Selection, SelectionResult
from lastman.services import league_admin
from lastman.services.errors import (
    InvalidStateTransition,
    NotFound,
    PermissionDenied,
    Unauthenticated,
    ValidationError,
)
from lastman.services.notification_service import AUDIENCE_ALL_PLAYERS, AUDIENCE_UNPICKED
from tests.factories import (
    OWNER_ID,
    make_fixture,
    make_league,
    make_round,
    make_selection,
    participant,
)


class FailingSink:
    def notify(self, league_id, user_id, type, title, message):
        raise RuntimeError("inbox unavailable")


def _winners(session: Session, league: League):
    session.expire_all()
    rows = session.exec(select(LeagueWinner).where(LeagueWinner.league_id == league.id)).all()
    return sorted(w.user_id for w in rows)


def _league_status(session: Session, league: League):
    session.expire_all()
    return session.get(League, league.id).status


def _play_two_rounds(session: Session, sink):
    """A wins round 1, B loses, C never picks; A draws round 2."""
    league = make_league(session, ["A", "B", "C"])

    r1 = make_round(session, league, 1)
    f1 = make_fixture(session, r1, "x", "y", 2, 1)
    f1b = make_fixture(session, r1, "w", "v", 3, 0)
    make_selection(session, r1, "A", f1, "x")
    make_selection(session, r1, "B", f1b, "v")
    league_admin.lock_round(session, sink, league.id, r1.id, OWNER_ID)
    league_admin.validate_round(session, sink, league.id, r1.id, OWNER_ID)

    r2 = make_round(session, league, 2)
    f2 = make_fixture(session, r2, "z", "q", 1, 1)
    a2 = make_selection(session, r2, "A", f2, "z")
    league_admin.lock_round(session, sink, league.id, r2.id, OWNER_ID)
    result = league_admin.validate_round(session, sink, league.id, r2.id, OWNER_ID)
    return league, r2, a2, result


class TestAuthorization:
    def test_missing_caller(self, session: Session, sink):
        league = make_league(session, ["alice"])
        round_ = make_round(session, league, 1)
        with pytest.raises(Unauthenticated):
            league_admin.lock_round(session, sink, league.id, round_.id, None)

    def test_non_owner_is_rejected_before_any_effect(self, session: Session, sink):
        league = make_league(session, ["alice"])
        round_ = make_round(session, league, 1)
        with pytest.raises(PermissionDenied):
            league_admin.lock_round(session, sink, league.id, round_.id, "alice")

        session.expire_all()
        assert session.get(Round, round_.id).status == RoundStatus.OPEN
        assert participant(session, league, "alice").eliminated is False
        assert sink.sent == []

    def test_unknown_league(self, session: Session, sink):
        with pytest.raises(NotFound):
            league_admin.validate_round(session, sink, 999, 1, OWNER_ID)

    def test_round_from_another_league(self, session: Session, sink):
        league = make_league(session, ["alice"])
        other = make_league(session, ["bob"], owner_id="owner-2", invite_code="XYZ789")
        foreign = make_round(session, other, 1)
        with pytest.raises(NotFound):
            league_admin.lock_round(session, sink, league.id, foreign.id, OWNER_ID)


class TestLeagueLifecycle:
    def test_sole_survivor_then_draw_wins_league(self, session: Session, sink):
        league, _, _, result = _play_two_rounds(session, sink)

        c = participant(session, league, "C")
        assert (c.eliminated_reason, c.eliminated_at_round) == (EliminationReason.NO_PICK, 1)
        b = participant(session, league, "B")
        assert (b.eliminated_reason, b.eliminated_at_round) == (EliminationReason.LOSS, 1)
        a = participant(session, league, "A")
        assert (a.eliminated_reason, a.eliminated_at_round) == (EliminationReason.LOSS, 2)

        assert result.league_completed is True
        assert result.winner_user_ids == ["A"]
        assert _league_status(session, league) == LeagueStatus.COMPLETED
        assert _winners(session, league) == ["A"]

        assert [n["type"] for n in sink.for_user("A")] == [NotificationType.ELIMINATED, NotificationType.LEAGUE_WINNER]
        assert len(sink.for_user("B")) == 1
        assert sink.for_user("C")[0]["message"] == "No pick was made before the deadline."

    def test_round_one_does_not_complete_while_a_survives(self, session: Session, sink):
        league = make_league(session, ["A", "B"])
        r1 = make_round(session, league, 1)
        f1 = make_fixture(session, r1, "x", "y", 2, 1)
        make_selection(session, r1, "A", f1, "x")
        make_selection(session, r1, "B", f1, "y")
        league_admin.lock_round(session, sink, league.id, r1.id, OWNER_ID)

        result = league_admin.validate_round(session, sink, league.id, r1.id, OWNER_ID)

        assert result.eliminated_user_ids == ["B"]
        assert result.league_completed is False
        assert _league_status(session, league) == LeagueStatus.ACTIVE

    def test_validate_before_lock_is_rejected(self, session: Session, sink):
        league = make_league(session, ["A"])
        r1 = make_round(session, league, 1)
        with pytest.raises(InvalidStateTransition):
            league_admin.validate_round(session, sink, league.id, r1.id, OWNER_ID)


class TestOverrides:
    def test_override_after_completion_reopens_league(self, session: Session, sink):
        league, r2, a2, _ = _play_two_rounds(session, sink)

        result = league_admin.override_selection_result(
            session, sink, league.id, r2.id, a2.id, SelectionResult.WIN, "Late goal given", OWNER_ID
        )

        assert result.league_reopened is True
        a = participant(session, league, "A")
        assert a.eliminated is False
        assert a.eliminated_at_round is None
        assert session.get(Selection, a2.id).result == SelectionResult.WIN
        assert _league_status(session, league) == LeagueStatus.ACTIVE
        assert _winners(session, league) == []

        override = session.exec(select(AdminOverride)).one()
        assert override.original_result == SelectionResult.DRAW
        assert override.override_result == SelectionResult.WIN
        assert override.created_by == OWNER_ID

    def test_reversal_restores_result_and_completion(self, session: Session, sink):
        league, r2, a2, _ = _play_two_rounds(session, sink)
        league_admin.override_selection_result(
            session, sink, league.id, r2.id, a2.id, SelectionResult.WIN, "Late goal given", OWNER_ID
        )
        override = session.exec(select(AdminOverride)).one()

        result = league_admin.reverse_override(session, sink, league.id, r2.id, override.id, OWNER_ID)

        assert result.league_completed is True
        assert result.winner_user_ids == ["A"]
        session.expire_all()
        assert session.get(Selection, a2.id).result == SelectionResult.DRAW
        assert session.exec(select(AdminOverride)).all() == []
        a = participant(session, league, "A")
        assert (a.eliminated, a.eliminated_at_round) == (True, 2)
        assert _winners(session, league) == ["A"]

    def test_replacing_an_override_keeps_the_first_snapshot(self, session: Session, sink):
        league, r2, a2, _ = _play_two_rounds(session, sink)
        for outcome in (SelectionResult.WIN, SelectionResult.LOSS):
            league_admin.override_selection_result(
                session, sink, league.id, r2.id, a2.id, outcome, "Correction", OWNER_ID
            )

        session.expire_all()
        rows = session.exec(select(AdminOverride)).all()
        assert len(rows) == 1
        assert rows[0].original_result == SelectionResult.DRAW
        assert rows[0].override_result == SelectionResult.LOSS

    def test_override_before_validation_is_only_recorded(self, session: Session, sink):
        league = make_league(session, ["A", "B"])
        r1 = make_round(session, league, 1)
        fixture = make_fixture(session, r1, "x", "y")
        selection = make_selection(session, r1, "A", fixture, "x")

        result = league_admin.override_selection_result(
            session, sink, league.id, r1.id, selection.id, SelectionResult.LOSS, "Ineligible pick", OWNER_ID
        )

        assert result.message == "Result override recorded"
        session.expire_all()
        assert session.get(Selection, selection.id).result is None
        assert participant(session, league, "A").eliminated is False

    def test_blank_reason_is_rejected(self, session: Session, sink):
        league, r2, a2, _ = _play_two_rounds(session, sink)
        with pytest.raises(ValidationError):
            league_admin.override_selection_result(
                session, sink, league.id, r2.id, a2.id, SelectionResult.WIN, "   ", OWNER_ID
            )

    def test_unknown_override(self, session: Session, sink):
        league, r2, _, _ = _play_two_rounds(session, sink)
        with pytest.raises(NotFound):
            league_admin.reverse_override(session, sink, league.id, r2.id, 12345, OWNER_ID)


    def _state(self, session: Session, league: League, user_id: str):
        p = participant(session, league, user_id)
        reason = EliminationReason(p.eliminated_reason).value if p.eliminated_reason else None
        return (p.eliminated, p.eliminated_at_round, reason)

    def _override_then_reverse(self, session: Session, sink, league: League, round_: Round, selection: Selection):
        league_admin.override_selection_result(
            session, sink, league.id, round_.id, selection.id, SelectionResult.LOSS, "Wrong team entered", OWNER_ID
        )
        after_override = self._state(session, league, selection.user_id)
        override = session.exec(select(AdminOverride).where(AdminOverride.selection_id == selection.id)).one()
        league_admin.reverse_override(session, sink, league.id, round_.id, override.id, OWNER_ID)
        return after_override

    def _won_round_one(self, session: Session, sink):
        league = make_league(session, ["A", "X"])
        r1 = make_round(session, league, 1)
        f1 = make_fixture(session, r1, "home", "away", 2, 0)
        make_selection(session, r1, "A", f1, "home")
        x1 = make_selection(session, r1, "X", f1, "home")
        league_admin.lock_round(session, sink, league.id, r1.id, OWNER_ID)
        league_admin.validate_round(session, sink, league.id, r1.id, OWNER_ID)
        return league, r1, x1

    def test_reversal_restores_a_missed_pick_elimination(self, session: Session, sink):
        league, r1, x1 = self._won_round_one(session, sink)
        r2 = make_round(session, league, 2)
        f2 = make_fixture(session, r2, "home", "away")
        make_selection(session, r2, "A", f2, "home")
        league_admin.lock_round(session, sink, league.id, r2.id, OWNER_ID)
        assert self._state(session, league, "X") == (True, 2, "NO_PICK")

        after_override = self._override_then_reverse(session, sink, league, r1, x1)

        assert after_override == (True, 1, "LOSS")
        assert self._state(session, league, "X") == (True, 2, "NO_PICK")
        session.expire_all()
        assert session.get(Selection, x1.id).result == SelectionResult.WIN

    def test_admin_elimination_survives_override_round_trip(self, session: Session, sink):
        league, r1, x1 = self._won_round_one(session, sink)
        make_round(session, league, 2)
        x = participant(session, league, "X")
        league_admin.manually_eliminate_participant(session, sink, league.id, x.id, 2, OWNER_ID)

        after_override = self._override_then_reverse(session, sink, league, r1, x1)

        assert after_override == (True, 2, "ADMIN")
        assert self._state(session, league, "X") == (True, 2, "ADMIN")
        session.expire_all()
        assert session.get(Selection, x1.id).result == SelectionResult.WIN

    def test_reversal_on_unfinished_fixture_restores_pending_result(self, session: Session, sink):
        league = make_league(session, ["A", "B"])
        r1 = make_round(session, league, 1, status=RoundStatus.LOCKED)
        fixture = make_fixture(session, r1, "home", "away")
        a1 = make_selection(session, r1, "A", fixture, "home")
        make_selection(session, r1, "B", fixture, "away")
        league_admin.validate_round(session, sink, league.id, r1.id, OWNER_ID)
        assert self._state(session, league, "A") == (False, None, None)

        after_override = self._override_then_reverse(session, sink, league, r1, a1)

        assert after_override == (True, 1, "LOSS")
        session.expire_all()
        assert session.get(Selection, a1.id).result is None
        assert self._state(session, league, "A") == (False, None, None)
        assert _league_status(session, league) == LeagueStatus.ACTIVE


class TestManualElimination:
    def test_eliminates_and_notifies(self, session: Session, sink):
        league = make_league(session, ["A", "B"])
        make_round(session, league, 1)
        b = participant(session, league, "B")

        result = league_admin.manually_eliminate_participant(session, sink, league.id, b.id, 1, OWNER_ID)

        assert result.eliminated_user_ids == ["B"]
        assert result.league_completed is False
        b = participant(session, league, "B")
        assert (b.eliminated, b.eliminated_at_round, b.eliminated_reason) == (True, 1, EliminationReason.ADMIN)
        assert sink.for_user("B")[0]["message"] == "You were manually eliminated by the league admin in Round 1."

    def test_last_manual_elimination_completes_league(self, session: Session, sink):
        league = make_league(session, ["A"])
        make_round(session, league, 1)
        a = participant(session, league, "A")

        result = league_admin.manually_eliminate_participant(session, sink, league.id, a.id, 1, OWNER_ID)

        assert result.league_completed is True
        assert result.winner_user_ids == []
        assert _league_status(session, league) == LeagueStatus.COMPLETED

    def test_round_number_must_be_positive(self, session: Session, sink):
        league = make_league(session, ["A"])
        a = participant(session, league, "A")
        with pytest.raises(ValidationError):
            league_admin.manually_eliminate_participant(session, sink, league.id, a.id, 0, OWNER_ID)


class TestManualNotifications:
    def test_all_players(self, session: Session, sink):
        league = make_league(session, ["A", "B", "C"])
        a = participant(session, league, "A")
        a.mark_eliminated(1, EliminationReason.LOSS)
        session.add(a)
        session.commit()

        result = league_admin.send_manual_notification(
            session, sink, league.id, AUDIENCE_ALL_PLAYERS, "Heads up", "Round 2 opens Friday", OWNER_ID
        )

        assert result.notifications_sent == 3
        assert sorted(n["user_id"] for n in sink.sent) == ["A", "B", "C"]
        assert {n["type"] for n in sink.sent} == {NotificationType.ADMIN_MESSAGE}

    def test_unpicked_targets_active_players_without_a_pick(self, session: Session, sink):
        league = make_league(session, ["A", "B", "C"])
        round_ = make_round(session, league, 1)
        fixture = make_fixture(session, round_, "x", "y")
        make_selection(session, round_, "A", fixture, "x")
        c = participant(session, league, "C")
        c.mark_eliminated(1, EliminationReason.ADMIN)
        session.add(c)
        session.commit()

        result = league_admin.send_manual_notification(
            session, sink, league.id, AUDIENCE_UNPICKED, "Reminder", "Make your pick", OWNER_ID, round_id=round_.id
        )

        assert result.notifications_sent == 1
        assert [n["user_id"] for n in sink.sent] == ["B"]

    def test_unpicked_needs_a_round(self, session: Session, sink):
        league = make_league(session, ["A"])
        with pytest.raises(ValidationError):
            league_admin.send_manual_notification(
                session, sink, league.id, AUDIENCE_UNPICKED, "Reminder", "Pick", OWNER_ID
            )

    def test_unknown_audience(self, session: Session, sink):
        league = make_league(session, ["A"])
        with pytest.raises(ValidationError):
            league_admin.send_manual_notification(session, sink, league.id, "EVERYONE", "t", "m", OWNER_ID)


def test_sink_failure_is_logged_and_state_still_commits(session: Session, caplog):
    league = make_league(session, ["A", "B"])
    round_ = make_round(session, league, 1)
    fixture = make_fixture(session, round_, "x", "y")
    make_selection(session, round_, "A", fixture, "x")

    with caplog.at_level(logging.ERROR, logger="lastman.services.notification_service"):
        result = league_admin.lock_round(session, FailingSink(), league.id, round_.id, OWNER_ID)

    assert result.eliminated_user_ids == ["B"]
    assert result.notifications_sent == 0
    assert "Failed to deliver" in caplog.text
    session.expire_all()
    assert session.get(Round, round_.id).status == RoundStatus.LOCKED
    assert participant(session, league, "B").eliminated is True
