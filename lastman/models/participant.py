from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class EliminationReason(str, Enum):
    LOSS = "LOSS"
    NO_PICK = "NO_PICK"
    ADMIN = "ADMIN"


class Participant(SQLModel, table=True):
    """One row per (league, user).

    eliminated_at_round and eliminated_reason are set iff eliminated is True.
    Use mark_eliminated / mark_alive rather than assigning the fields directly.

    missed_pick_round is the first locked round without a pick. Unlike the
    elimination fields it is never cleared, so recalculation can restore a
    NO_PICK elimination after the LOSS that replaced it is undone.
    """

    __table_args__ = (SAUniqueConstraint("league_id", "user_id", name="uq_participant_league_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="league.id", index=True)
    user_id: str = Field(index=True)
    display_name: Optional[str] = None

    eliminated: bool = Field(default=False)
    eliminated_at_round: Optional[int] = Field(default=None)
    eliminated_reason: Optional[EliminationReason] = Field(default=None, sa_column=Column(String, nullable=True))
    missed_pick_round: Optional[int] = Field(default=None)

    joined_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def mark_eliminated(self, round_number: int, reason: EliminationReason) -> None:
        self.eliminated = True
        self.eliminated_at_round = round_number
        self.eliminated_reason = reason
        if reason == EliminationReason.NO_PICK and (
            self.missed_pick_round is None or round_number < self.missed_pick_round
        ):
            self.missed_pick_round = round_number

    def mark_alive(self) -> None:
        self.eliminated = False
        self.eliminated_at_round = None
        self.eliminated_reason = None
