from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlmodel import Session

from lastman.database import get_session
from lastman.routes.rounds import AdminActionResponse, action_response
from lastman.services import league_admin
from lastman.services.errors import LeagueError
from lastman.services.notification_service import NotificationSink
from lastman.utils.dependencies import get_caller_id, get_notification_sink
from lastman.utils.http_errors import to_http_exception

router = APIRouter()


class EliminateRequest(BaseModel):
    round_number: int = Field(ge=1)


@router.post(
    "/leagues/{league_id}/participants/{participant_id}/eliminate",
    response_model=AdminActionResponse,
)
def eliminate_participant(
    league_id: int,
    participant_id: int,
    payload: EliminateRequest,
    session: Session = Depends(get_session),
    sink: NotificationSink = Depends(get_notification_sink),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """Admin elimination (reason ADMIN). Overwrites any earlier elimination."""
    try:
        result = league_admin.manually_eliminate_participant(
            session, sink, league_id, participant_id, payload.round_number, caller_id
        )
    except LeagueError as e:
        raise to_http_exception(e)
    return action_response(result)
