"""
Request-scoped dependencies shared by the routers.

Sign-in lives outside this service; the fronting gateway forwards the
verified user id in the X-User-Id header. A missing header reaches the
services as caller_id=None and is rejected there as Unauthenticated.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlmodel import Session

from lastman.database import get_session
from lastman.services.notification_service import DatabaseNotificationSink, NotificationSink

CALLER_HEADER = "X-User-Id"


def get_caller_id(x_user_id: Optional[str] = Header(default=None, alias=CALLER_HEADER)) -> Optional[str]:
    return x_user_id


def get_notification_sink(session: Session = Depends(get_session)) -> NotificationSink:
    return DatabaseNotificationSink(session)
