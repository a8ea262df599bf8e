from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class SelectionResult(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    DRAW = "DRAW"


class Selection(SQLModel, table=True):
    """A user's pick for one round. Only `result` changes after creation."""

    __table_args__ = (SAUniqueConstraint("round_id", "user_id", name="uq_selection_round_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="league.id", index=True)
    round_id: int = Field(foreign_key="round.id", index=True)
    user_id: str = Field(index=True)

    selected_team_id: str
    selected_team_name: str
    fixture_id: int = Field(foreign_key="fixture.id")

    result: Optional[SelectionResult] = Field(default=None, sa_column=Column(String, nullable=True))  # None = pending

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
