"""Tests for notification side effects and the inbox."""

import logging

from sqlalchemy.exc import SQLAlchemyError

from threadline.models import NotificationType
from threadline.services import notifications


def _notify(db_session, actor, recipient, kind=NotificationType.POST_REPLY):
    note = notifications.notify(
        db_session,
        actor_id=actor.id,
        recipient_id=recipient.id,
        kind=kind,
        message="something happened",
    )
    db_session.commit()
    return note


def test_self_notifications_are_skipped(db_session, alice) -> None:
    assert _notify(db_session, alice, alice) is None
    assert notifications.unread_count(db_session, alice.id) == 0


def test_inbox_filters_and_unread_count(db_session, alice, bob) -> None:
    _notify(db_session, bob, alice, NotificationType.POST_REPLY)
    reaction = _notify(db_session, bob, alice, NotificationType.POST_REACTION)

    inbox = notifications.list_notifications(db_session, alice.id, limit=10)
    assert inbox.unread_count == 2
    assert [note.id for note in inbox.page.items][0] == reaction.id

    only_reactions = notifications.list_notifications(
        db_session, alice.id, kind=NotificationType.POST_REACTION.value, limit=10
    )
    assert [note.id for note in only_reactions.page.items] == [reaction.id]


def test_mark_read_selected_then_all(db_session, alice, bob) -> None:
    first = _notify(db_session, bob, alice)
    _notify(db_session, bob, alice)
    _notify(db_session, alice, bob)

    assert notifications.mark_read(db_session, alice.id, [first.id]) == 1
    assert notifications.unread_count(db_session, alice.id) == 1
    assert notifications.mark_read(db_session, alice.id, []) == 0
    assert notifications.unread_count(db_session, alice.id) == 1
    assert notifications.mark_read(db_session, alice.id) == 1
    assert notifications.unread_count(db_session, alice.id) == 0
    assert notifications.unread_count(db_session, bob.id) == 1

    unread = notifications.list_notifications(db_session, alice.id, unread_only=True, limit=10)
    assert unread.page.items == []


def test_notify_failure_is_logged_not_raised(db_session, alice, bob, monkeypatch, caplog) -> None:
    def broken_add(instance):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "add", broken_add)
    with caplog.at_level(logging.WARNING, logger="threadline.services.notifications"):
        result = notifications.notify(
            db_session,
            actor_id=bob.id,
            recipient_id=alice.id,
            kind=NotificationType.POST_REPLY,
            message="lost",
        )
    assert result is None
    assert "Failed to create POST_REPLY notification" in caplog.text
