"""Fixtures of a round. Creatable and scorable until the round is VALIDATED."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlmodel import Session

from lastman.database import get_session
from lastman.models.fixture import Fixture, FixtureStatus
from lastman.models.round import RoundStatus
from lastman.services.errors import InvalidStateTransition, LeagueError, NotFound, ValidationError
from lastman.services.league_repository import LeagueRepository
from lastman.services.round_state_machine import accepts_fixture_changes
from lastman.utils.dependencies import get_caller_id
from lastman.utils.http_errors import to_http_exception
from lastman.utils.league_guards import get_round_or_404, require_league_owner
from lastman.utils.timestamps import ensure_utc, utcnow

router = APIRouter()


class FixtureCreate(BaseModel):
    home_team_id: str
    home_team_name: str
    away_team_id: str
    away_team_name: str
    kickoff_time: datetime

    @field_validator("kickoff_time")
    @classmethod
    def kickoff_in_utc(cls, v):
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_teams(self):
        if self.home_team_id == self.away_team_id:
            raise ValueError("home_team_id and away_team_id must differ")
        return self


class FixtureUpdate(BaseModel):
    status: Optional[FixtureStatus] = None
    home_score: Optional[int] = Field(default=None, ge=0)
    away_score: Optional[int] = Field(default=None, ge=0)


class FixtureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    league_id: int
    round_id: int
    home_team_id: str
    home_team_name: str
    away_team_id: str
    away_team_name: str
    kickoff_time: datetime
    status: FixtureStatus
    home_score: Optional[int] = None
    away_score: Optional[int] = None


def _require_editable_round(session: Session, league_id: int, round_id: int):
    round_ = get_round_or_404(session, league_id, round_id)
    if not accepts_fixture_changes(round_.status):
        raise InvalidStateTransition(
            f"Cannot change fixtures of round {round_.number}: it is {RoundStatus(round_.status).value}"
        )
    return round_


@router.post("/leagues/{league_id}/rounds/{round_id}/fixtures", response_model=FixtureResponse, status_code=201)
def create_fixture(
    league_id: int,
    round_id: int,
    payload: FixtureCreate,
    session: Session = Depends(get_session),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    try:
        require_league_owner(session, league_id, caller_id)
        _require_editable_round(session, league_id, round_id)
    except LeagueError as e:
        raise to_http_exception(e)

    fixture = Fixture(league_id=league_id, round_id=round_id, **payload.model_dump())
    session.add(fixture)
    session.commit()
    session.refresh(fixture)
    return fixture


@router.get("/leagues/{league_id}/rounds/{round_id}/fixtures", response_model=List[FixtureResponse])
def list_fixtures(league_id: int, round_id: int, session: Session = Depends(get_session)):
    """Fixtures of the round ordered by kickoff"""
    try:
        get_round_or_404(session, league_id, round_id)
    except LeagueError as e:
        raise to_http_exception(e)
    fixtures = LeagueRepository(session).list_fixtures(league_id, round_id).values()
    return sorted(fixtures, key=lambda f: (f.kickoff_time, f.id))


@router.patch("/leagues/{league_id}/rounds/{round_id}/fixtures/{fixture_id}", response_model=FixtureResponse)
def update_fixture(
    league_id: int,
    round_id: int,
    fixture_id: int,
    payload: FixtureUpdate,
    session: Session = Depends(get_session),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """Record status and score. Scores are set iff the fixture is FINISHED."""
    try:
        require_league_owner(session, league_id, caller_id)
        _require_editable_round(session, league_id, round_id)

        fixture = LeagueRepository(session).get_fixture(league_id, round_id, fixture_id)
        if not fixture:
            raise NotFound(f"Fixture {fixture_id} not found")

        updates = payload.model_dump(exclude_unset=True)
        home_score = updates.get("home_score", fixture.home_score)
        away_score = updates.get("away_score", fixture.away_score)
        status = updates.get("status") or fixture.status

        if status == FixtureStatus.FINISHED:
            if home_score is None or away_score is None:
                raise ValidationError("A FINISHED fixture requires home_score and away_score")
        elif updates.get("home_score") is not None or updates.get("away_score") is not None:
            raise ValidationError("Scores can only be recorded on a FINISHED fixture")
        else:
            # Scores are present iff FINISHED
            home_score = away_score = None
    except LeagueError as e:
        raise to_http_exception(e)

    fixture.status = status
    fixture.home_score = home_score
    fixture.away_score = away_score
    fixture.updated_at = utcnow()
    session.add(fixture)
    session.commit()
    session.refresh(fixture)
    return fixture
