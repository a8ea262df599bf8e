"""In-app notification inbox rows."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlmodel import Column, Field, SQLModel


class NotificationType(str, Enum):
    ELIMINATED = "ELIMINATED"
    LEAGUE_WINNER = "LEAGUE_WINNER"
    ADMIN_MESSAGE = "ADMIN_MESSAGE"


class Notification(SQLModel, table=True):
    """One row per recipient per event (never a broadcast record)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="league.id", index=True)
    user_id: str = Field(index=True)
    type: NotificationType = Field(sa_column=Column(String, nullable=False))
    title: str
    message: str
    deep_link: Optional[str] = Field(default=None)
    read: bool = Field(default=False)
    sent_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
