from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlmodel import Column, Field, SQLModel


class FixtureStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


class Fixture(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="league.id", index=True)
    round_id: int = Field(foreign_key="round.id", index=True)

    home_team_id: str
    home_team_name: str
    away_team_id: str
    away_team_name: str
    kickoff_time: datetime

    status: FixtureStatus = Field(default=FixtureStatus.SCHEDULED, sa_column=Column(String, nullable=False))
    # Present iff status is FINISHED
    home_score: Optional[int] = Field(default=None)
    away_score: Optional[int] = Field(default=None)

    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
