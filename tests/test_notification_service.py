from sqlmodel import Session, select

from lastman.models.notification import Notification, NotificationType
from lastman.models.participant import EliminationReason
from lastman.models.selection import SelectionResult
from lastman.services.notification_service import (
    DatabaseNotificationSink,
    admin_messages,
    dispatch_notifications,
    elimination_notice,
    winner_notice,
)
from tests.factories import make_league


def test_elimination_messages():
    assert elimination_notice(1, "a", EliminationReason.LOSS, 3, SelectionResult.LOSS).message == (
        "Your team lost. Better luck next time!"
    )
    assert elimination_notice(1, "a", EliminationReason.LOSS, 3, SelectionResult.DRAW).message == (
        "Your team drew. Better luck next time!"
    )
    admin = elimination_notice(1, "a", EliminationReason.ADMIN, 3)
    assert admin.title == "You've been eliminated"
    assert admin.message == "You were manually eliminated by the league admin in Round 3."
    assert admin.type == NotificationType.ELIMINATED


def test_database_sink_writes_one_row_per_recipient(session: Session):
    league = make_league(session, ["a", "b"])
    pending = admin_messages(league.id, ["a", "b"], "Heads up", "Deadline moved") + [winner_notice(league.id, "a")]

    delivered = dispatch_notifications(DatabaseNotificationSink(session), pending)

    assert delivered == 3
    rows = session.exec(select(Notification).order_by(Notification.id)).all()
    assert [(n.user_id, n.type) for n in rows] == [
        ("a", NotificationType.ADMIN_MESSAGE),
        ("b", NotificationType.ADMIN_MESSAGE),
        ("a", NotificationType.LEAGUE_WINNER),
    ]
    assert all(n.read is False for n in rows)


def test_one_failed_delivery_does_not_stop_the_rest(sink):
    class FlakySink:
        def notify(self, league_id, user_id, type, title, message):
            if user_id == "b":
                raise ConnectionError("push gateway down")
            sink.notify(league_id, user_id, type, title, message)

    delivered = dispatch_notifications(FlakySink(), admin_messages(1, ["a", "b", "c"], "t", "m"))

    assert delivered == 2
    assert [n["user_id"] for n in sink.sent] == ["a", "c"]
