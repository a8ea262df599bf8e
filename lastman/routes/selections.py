"""Picks for a round, plus the admin override log that can correct their results."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from lastman.database import get_session
from lastman.models.selection import SelectionResult
from lastman.routes.rounds import AdminActionResponse, action_response
from lastman.services import league_admin
from lastman.services.errors import LeagueError
from lastman.services.league_repository import LeagueRepository
from lastman.services.notification_service import NotificationSink
from lastman.utils.dependencies import get_caller_id, get_notification_sink
from lastman.utils.http_errors import to_http_exception
from lastman.utils.league_guards import get_round_or_404, require_caller, require_league_owner

router = APIRouter()


class SelectionCreate(BaseModel):
    fixture_id: int
    selected_team_id: str
    selected_team_name: Optional[str] = None


class SelectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    league_id: int
    round_id: int
    user_id: str
    selected_team_id: str
    selected_team_name: str
    fixture_id: int
    result: Optional[SelectionResult] = None
    created_at: datetime
    updated_at: datetime


class OverrideRequest(BaseModel):
    override_result: SelectionResult
    reason: str


class OverrideResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    league_id: int
    round_id: int
    selection_id: int
    user_id: str
    original_result: Optional[SelectionResult] = None
    override_result: SelectionResult
    reason: str
    created_by: str
    created_at: datetime


@router.post(
    "/leagues/{league_id}/rounds/{round_id}/selections",
    response_model=SelectionResponse,
    status_code=201,
)
def create_selection(
    league_id: int,
    round_id: int,
    payload: SelectionCreate,
    session: Session = Depends(get_session),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """Caller picks a team to win its fixture in this round"""
    try:
        user_id = require_caller(caller_id)
        round_ = get_round_or_404(session, league_id, round_id)
        selection = LeagueRepository(session).create_selection(
            round_,
            user_id,
            payload.fixture_id,
            payload.selected_team_id,
            payload.selected_team_name,
        )
        session.commit()
    except LeagueError as e:
        raise to_http_exception(e)

    session.refresh(selection)
    return selection


@router.get("/leagues/{league_id}/rounds/{round_id}/selections", response_model=List[SelectionResponse])
def list_selections(
    league_id: int,
    round_id: int,
    user_id: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
):
    try:
        get_round_or_404(session, league_id, round_id)
    except LeagueError as e:
        raise to_http_exception(e)

    selections = LeagueRepository(session).list_selections(league_id, round_id)
    if user_id:
        selections = [s for s in selections if s.user_id == user_id]
    return selections


@router.post(
    "/leagues/{league_id}/rounds/{round_id}/selections/{selection_id}/override",
    response_model=AdminActionResponse,
)
def override_selection_result(
    league_id: int,
    round_id: int,
    selection_id: int,
    payload: OverrideRequest,
    session: Session = Depends(get_session),
    sink: NotificationSink = Depends(get_notification_sink),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """Override a pick's result. Applied immediately if the round is already validated."""
    try:
        result = league_admin.override_selection_result(
            session,
            sink,
            league_id,
            round_id,
            selection_id,
            payload.override_result,
            payload.reason,
            caller_id,
        )
    except LeagueError as e:
        raise to_http_exception(e)
    return action_response(result)


@router.get("/leagues/{league_id}/rounds/{round_id}/overrides", response_model=List[OverrideResponse])
def list_overrides(
    league_id: int,
    round_id: int,
    session: Session = Depends(get_session),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    try:
        require_league_owner(session, league_id, caller_id)
        get_round_or_404(session, league_id, round_id)
    except LeagueError as e:
        raise to_http_exception(e)
    return LeagueRepository(session).list_overrides(league_id, round_id)


@router.delete("/leagues/{league_id}/rounds/{round_id}/overrides/{override_id}", response_model=AdminActionResponse)
def reverse_override(
    league_id: int,
    round_id: int,
    override_id: int,
    session: Session = Depends(get_session),
    sink: NotificationSink = Depends(get_notification_sink),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """Delete an override and replay the affected player's history"""
    try:
        result = league_admin.reverse_override(session, sink, league_id, round_id, override_id, caller_id)
    except LeagueError as e:
        raise to_http_exception(e)
    return action_response(result)
