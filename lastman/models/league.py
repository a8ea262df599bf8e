from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlmodel import Column, Field, SQLModel


class LeagueStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class League(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(index=True)
    name: str
    description: Optional[str] = None
    status: LeagueStatus = Field(default=LeagueStatus.ACTIVE, sa_column=Column(String, nullable=False))
    time_zone: str = Field(default="Europe/London")
    invite_code: str = Field(index=True, unique=True)
    block_invite_join: bool = Field(default=False)

    # Competition metadata (informational only)
    competition_code: Optional[str] = None  # e.g. "PL", "WC"
    competition_name: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
