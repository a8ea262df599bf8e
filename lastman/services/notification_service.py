"""Notification dispatch.

Engine operations never write notifications inside their state batch. They
return PendingNotification values; callers hand them to
dispatch_notifications() once the batch has committed. Delivery is
fire-and-forget: a failing sink is logged and skipped.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol

from sqlmodel import Session

from lastman.models.notification import Notification, NotificationType
from lastman.models.participant import EliminationReason
from lastman.models.selection import SelectionResult

logger = logging.getLogger(__name__)

AUDIENCE_ALL_PLAYERS = "ALL_PLAYERS"
AUDIENCE_UNPICKED = "UNPICKED"

ELIMINATED_TITLE = "You've been eliminated"
WINNER_TITLE = "You won!"


@dataclass(frozen=True)
class PendingNotification:
    league_id: int
    user_id: str
    type: NotificationType
    title: str
    message: str


class NotificationSink(Protocol):
    def notify(
        self,
        league_id: int,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
    ) -> None: ...


class DatabaseNotificationSink:
    """Writes one inbox row per recipient."""

    def __init__(self, session: Session):
        self.session = session

    def notify(
        self,
        league_id: int,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
    ) -> None:
        self.session.add(
            Notification(
                league_id=league_id,
                user_id=user_id,
                type=type,
                title=title,
                message=message,
            )
        )
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise


def elimination_notice(
    league_id: int,
    user_id: str,
    reason: EliminationReason,
    round_number: int,
    result: Optional[SelectionResult] = None,
) -> PendingNotification:
    if reason == EliminationReason.NO_PICK:
        message = "No pick was made before the deadline."
    elif reason == EliminationReason.ADMIN:
        message = f"You were manually eliminated by the league admin in Round {round_number}."
    else:
        verb = "drew" if result == SelectionResult.DRAW else "lost"
        message = f"Your team {verb}. Better luck next time!"
    return PendingNotification(
        league_id=league_id,
        user_id=user_id,
        type=NotificationType.ELIMINATED,
        title=ELIMINATED_TITLE,
        message=message,
    )


def winner_notice(league_id: int, user_id: str) -> PendingNotification:
    return PendingNotification(
        league_id=league_id,
        user_id=user_id,
        type=NotificationType.LEAGUE_WINNER,
        title=WINNER_TITLE,
        message="Congratulations! You are a league winner.",
    )


def admin_messages(league_id: int, user_ids: Iterable[str], title: str, message: str) -> List[PendingNotification]:
    return [
        PendingNotification(
            league_id=league_id,
            user_id=user_id,
            type=NotificationType.ADMIN_MESSAGE,
            title=title,
            message=message,
        )
        for user_id in user_ids
    ]


def dispatch_notifications(sink: NotificationSink, pending: Iterable[PendingNotification]) -> int:
    """
    Deliver pending notifications through the sink.

    Returns the number delivered. A delivery failure never propagates; the
    state change that produced the notification has already committed.
    """
    delivered = 0
    for item in pending:
        try:
            sink.notify(item.league_id, item.user_id, item.type, item.title, item.message)
            delivered += 1
        except Exception:
            logger.exception(
                "Failed to deliver %s notification to user %s (league %s)",
                item.type,
                item.user_id,
                item.league_id,
            )
    return delivered
