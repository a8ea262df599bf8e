"""
Round lifecycle endpoints: create, list, lock, validate.

Lock and validate are explicit admin actions; the stored start/lock times
are informational and nothing here is time-triggered.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from lastman.database import get_session
from lastman.models.round import Round, RoundStatus
from lastman.services import league_admin
from lastman.services.errors import InvalidStateTransition, LeagueError
from lastman.services.league_admin import AdminActionResult
from lastman.services.league_repository import LeagueRepository
from lastman.services.notification_service import NotificationSink
from lastman.utils.dependencies import get_caller_id, get_notification_sink
from lastman.utils.http_errors import to_http_exception
from lastman.utils.league_guards import (
    get_league_or_404,
    get_round_or_404,
    require_active_league,
    require_league_owner,
)
from lastman.utils.timestamps import ensure_utc

logger = logging.getLogger(__name__)

router = APIRouter()


class RoundCreate(BaseModel):
    start_time: datetime
    lock_time: datetime

    @field_validator("start_time", "lock_time")
    @classmethod
    def in_utc(cls, v):
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_time_range(self):
        if self.start_time >= self.lock_time:
            raise ValueError("start_time must be before lock_time")
        return self


class RoundResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    league_id: int
    number: int
    status: RoundStatus
    start_time: datetime
    lock_time: datetime
    created_at: datetime
    updated_at: datetime


class AdminActionResponse(BaseModel):
    success: bool = True
    message: str
    eliminated_user_ids: List[str] = []
    league_completed: bool = False
    league_reopened: bool = False
    winner_user_ids: List[str] = []
    notifications_sent: int = 0


def action_response(result: AdminActionResult) -> AdminActionResponse:
    return AdminActionResponse(
        message=result.message,
        eliminated_user_ids=result.eliminated_user_ids,
        league_completed=result.league_completed,
        league_reopened=result.league_reopened,
        winner_user_ids=result.winner_user_ids,
        notifications_sent=result.notifications_sent,
    )


@router.post("/leagues/{league_id}/rounds", response_model=RoundResponse, status_code=201)
def create_round(
    league_id: int,
    payload: RoundCreate,
    session: Session = Depends(get_session),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """Create the next round (number = previous highest + 1)"""
    try:
        league = require_league_owner(session, league_id, caller_id)
        require_active_league(league)

        number = LeagueRepository(session).last_round_number(league_id) + 1
        round_ = Round(
            league_id=league_id,
            number=number,
            start_time=payload.start_time,
            lock_time=payload.lock_time,
        )
        session.add(round_)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise InvalidStateTransition(f"Round {number} was created concurrently; retry")
    except LeagueError as e:
        raise to_http_exception(e)

    session.refresh(round_)
    logger.info("Round %s created in league %s", round_.number, league_id)
    return round_


@router.get("/leagues/{league_id}/rounds", response_model=List[RoundResponse])
def list_rounds(league_id: int, session: Session = Depends(get_session)):
    """List rounds ordered by number"""
    try:
        get_league_or_404(session, league_id)
    except LeagueError as e:
        raise to_http_exception(e)
    return LeagueRepository(session).list_rounds(league_id)


@router.get("/leagues/{league_id}/rounds/{round_id}", response_model=RoundResponse)
def get_round(league_id: int, round_id: int, session: Session = Depends(get_session)):
    try:
        return get_round_or_404(session, league_id, round_id)
    except LeagueError as e:
        raise to_http_exception(e)


@router.post("/leagues/{league_id}/rounds/{round_id}/lock", response_model=AdminActionResponse)
def lock_round(
    league_id: int,
    round_id: int,
    session: Session = Depends(get_session),
    sink: NotificationSink = Depends(get_notification_sink),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """OPEN -> LOCKED. Active participants without a pick are eliminated (NO_PICK)."""
    try:
        result = league_admin.lock_round(session, sink, league_id, round_id, caller_id)
    except LeagueError as e:
        raise to_http_exception(e)
    return action_response(result)


@router.post("/leagues/{league_id}/rounds/{round_id}/validate", response_model=AdminActionResponse)
def validate_round(
    league_id: int,
    round_id: int,
    session: Session = Depends(get_session),
    sink: NotificationSink = Depends(get_notification_sink),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """LOCKED -> VALIDATED. Applies results, eliminates losers, checks league completion."""
    try:
        result = league_admin.validate_round(session, sink, league_id, round_id, caller_id)
    except LeagueError as e:
        raise to_http_exception(e)
    return action_response(result)
