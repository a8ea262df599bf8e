from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class RoundStatus(str, Enum):
    OPEN = "OPEN"
    LOCKED = "LOCKED"
    VALIDATED = "VALIDATED"


class Round(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("league_id", "number", name="uq_round_league_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="league.id", index=True)
    number: int  # 1-based, strictly increasing within a league
    status: RoundStatus = Field(default=RoundStatus.OPEN, sa_column=Column(String, nullable=False))

    # Informational only; locking is an explicit admin action
    start_time: datetime
    lock_time: datetime

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
