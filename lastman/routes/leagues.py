import logging
import secrets
import string
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from lastman.database import get_session
from lastman.models.league import League, LeagueStatus
from lastman.models.participant import EliminationReason, Participant
from lastman.services.errors import DuplicateParticipant, LeagueError, NotFound, PermissionDenied, ValidationError
from lastman.services.league_repository import LeagueRepository
from lastman.utils.dependencies import get_caller_id
from lastman.utils.http_errors import to_http_exception
from lastman.utils.league_guards import get_league_or_404, require_caller

logger = logging.getLogger(__name__)

router = APIRouter()

INVITE_CODE_LENGTH = 6
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


class LeagueCreate(BaseModel):
    name: str
    description: Optional[str] = None
    time_zone: str = "Europe/London"
    block_invite_join: bool = False
    competition_code: Optional[str] = None
    competition_name: Optional[str] = None

    @field_validator("name", "time_zone")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class LeagueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    name: str
    description: Optional[str] = None
    status: LeagueStatus
    time_zone: str
    invite_code: str
    block_invite_join: bool
    competition_code: Optional[str] = None
    competition_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class JoinLeagueRequest(BaseModel):
    invite_code: str
    display_name: Optional[str] = None


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    league_id: int
    user_id: str
    display_name: Optional[str] = None
    eliminated: bool
    eliminated_at_round: Optional[int] = None
    eliminated_reason: Optional[EliminationReason] = None
    missed_pick_round: Optional[int] = None
    joined_at: datetime


class WinnerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    league_id: int
    user_id: str
    created_at: datetime


def generate_invite_code(session: Session) -> str:
    """Random 6-character code not already used by another league."""
    repo = LeagueRepository(session)
    while True:
        code = "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))
        if not repo.get_league_by_invite_code(code):
            return code


@router.post("/leagues", response_model=LeagueResponse, status_code=201)
def create_league(
    payload: LeagueCreate,
    session: Session = Depends(get_session),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """Create a league owned by the caller"""
    try:
        owner_id = require_caller(caller_id)
    except LeagueError as e:
        raise to_http_exception(e)

    league = League(owner_id=owner_id, invite_code=generate_invite_code(session), **payload.model_dump())
    session.add(league)
    session.commit()
    session.refresh(league)
    logger.info("League %s created by %s", league.id, owner_id)
    return league


@router.get("/leagues/{league_id}", response_model=LeagueResponse)
def get_league(league_id: int, session: Session = Depends(get_session)):
    try:
        return get_league_or_404(session, league_id)
    except LeagueError as e:
        raise to_http_exception(e)


@router.post("/leagues/join", response_model=ParticipantResponse, status_code=201)
def join_league(
    payload: JoinLeagueRequest,
    session: Session = Depends(get_session),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """Join a league by invite code"""
    try:
        user_id = require_caller(caller_id)
        repo = LeagueRepository(session)
        code = payload.invite_code.strip().upper()
        if not code:
            raise ValidationError("invite_code is required")

        league = repo.get_league_by_invite_code(code)
        if not league:
            raise NotFound("Invalid invite code")
        if league.block_invite_join:
            raise PermissionDenied("This league does not accept invite-code joins")
        if league.status != LeagueStatus.ACTIVE:
            raise PermissionDenied("This league is no longer accepting players")
        if repo.get_participant(league.id, user_id):
            raise DuplicateParticipant(f"User {user_id} already joined league {league.id}")

        participant = Participant(league_id=league.id, user_id=user_id, display_name=payload.display_name)
        session.add(participant)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise DuplicateParticipant(f"User {user_id} already joined league {league.id}")
    except LeagueError as e:
        raise to_http_exception(e)

    session.refresh(participant)
    return participant


@router.get("/leagues/{league_id}/participants", response_model=List[ParticipantResponse])
def list_participants(league_id: int, session: Session = Depends(get_session)):
    """League roster in join order"""
    try:
        get_league_or_404(session, league_id)
    except LeagueError as e:
        raise to_http_exception(e)
    return LeagueRepository(session).list_participants(league_id)


@router.get("/leagues/{league_id}/winners", response_model=List[WinnerResponse])
def list_winners(league_id: int, session: Session = Depends(get_session)):
    try:
        get_league_or_404(session, league_id)
    except LeagueError as e:
        raise to_http_exception(e)
    return LeagueRepository(session).list_winners(league_id)
