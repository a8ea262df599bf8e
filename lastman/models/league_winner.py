from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class LeagueWinner(SQLModel, table=True):
    """One row per winning user; several rows mean joint winners."""

    __tablename__ = "league_winner"
    __table_args__ = (SAUniqueConstraint("league_id", "user_id", name="uq_league_winner_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="league.id", index=True)
    user_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
