"""Notification inbox and admin broadcasts."""

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, select

from lastman.database import get_session
from lastman.models.notification import Notification, NotificationType
from lastman.routes.rounds import AdminActionResponse, action_response
from lastman.services import league_admin
from lastman.services.errors import LeagueError, NotFound
from lastman.services.notification_service import NotificationSink
from lastman.utils.dependencies import get_caller_id, get_notification_sink
from lastman.utils.http_errors import to_http_exception
from lastman.utils.league_guards import require_caller

router = APIRouter()


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    league_id: int
    user_id: str
    type: NotificationType
    title: str
    message: str
    deep_link: Optional[str] = None
    read: bool
    sent_at: datetime


class ManualNotificationRequest(BaseModel):
    audience: Literal["ALL_PLAYERS", "UNPICKED"]
    title: str
    message: str
    round_id: Optional[int] = None

    @field_validator("title", "message")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


@router.get("/notifications", response_model=List[NotificationResponse])
def list_my_notifications(
    unread_only: bool = Query(default=False),
    session: Session = Depends(get_session),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """Caller's inbox, newest first"""
    try:
        user_id = require_caller(caller_id)
    except LeagueError as e:
        raise to_http_exception(e)

    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.read == False)  # noqa: E712
    return session.exec(query.order_by(Notification.sent_at.desc(), Notification.id.desc())).all()


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    session: Session = Depends(get_session),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    try:
        user_id = require_caller(caller_id)
        notification = session.get(Notification, notification_id)
        # Other users' notifications are reported as missing
        if not notification or notification.user_id != user_id:
            raise NotFound(f"Notification {notification_id} not found")
    except LeagueError as e:
        raise to_http_exception(e)

    notification.read = True
    session.add(notification)
    session.commit()
    session.refresh(notification)
    return notification


@router.post("/leagues/{league_id}/notifications", response_model=AdminActionResponse)
def send_manual_notification(
    league_id: int,
    payload: ManualNotificationRequest,
    session: Session = Depends(get_session),
    sink: NotificationSink = Depends(get_notification_sink),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """Owner broadcast: one ADMIN_MESSAGE per recipient"""
    try:
        result = league_admin.send_manual_notification(
            session,
            sink,
            league_id,
            payload.audience,
            payload.title,
            payload.message,
            caller_id,
            round_id=payload.round_id,
        )
    except LeagueError as e:
        raise to_http_exception(e)
    return action_response(result)
