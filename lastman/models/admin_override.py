"""Admin corrections to a computed selection result."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String
from sqlmodel import Column, Field, SQLModel

from lastman.models.selection import SelectionResult


class AdminOverride(SQLModel, table=True):
    """Append/delete log entry. Deleting the row reverses the override."""

    __tablename__ = "admin_override"

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="league.id", index=True)
    round_id: int = Field(foreign_key="round.id", index=True)
    selection_id: int = Field(foreign_key="selection.id", index=True)
    user_id: str

    original_result: Optional[SelectionResult] = Field(default=None, sa_column=Column(String, nullable=True))
    override_result: SelectionResult = Field(sa_column=Column(String, nullable=False))
    reason: str
    created_by: str  # admin user id
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
