"""Fixture score -> pick outcome."""

from lastman.models.fixture import Fixture
from lastman.models.selection import SelectionResult


def resolve_result(fixture: Fixture, selected_team_id: str) -> SelectionResult:
    """
    Compute WIN/LOSS/DRAW for a pick on a FINISHED fixture.

    A draw is always DRAW, whichever side was picked. Otherwise the pick wins
    only if the selected team is the side with the strictly higher score.
    Callers must only pass FINISHED fixtures (both scores set).
    """
    home_score = fixture.home_score
    away_score = fixture.away_score

    if home_score == away_score:
        return SelectionResult.DRAW

    if fixture.home_team_id == selected_team_id and home_score > away_score:
        return SelectionResult.WIN
    if fixture.away_team_id == selected_team_id and away_score > home_score:
        return SelectionResult.WIN
    return SelectionResult.LOSS


def is_survival(result) -> bool:
    """Only a WIN keeps a participant alive; LOSS and DRAW both eliminate."""
    return result == SelectionResult.WIN


def is_elimination(result) -> bool:
    return result in (SelectionResult.LOSS, SelectionResult.DRAW)
