from boardevents.models import Event, Mention, Notification, UserRole
from boardevents.services import cards as cards_service
from boardevents.services import notifier as notifier_service
from boardevents.services.notifier import (
    CardEventNotifier,
    CommentEventNotifier,
    EventNotifier,
    notifiers,
)


def _latest_event(db_session, action):
    return (
        db_session.query(Event)
        .filter(Event.action == action)
        .order_by(Event.created_at.desc())
        .first()
    )


def _recipient_ids(notifications):
    return [notification.user_id for notification in notifications]


def _sorted_ids(*users):
    return sorted((user.id for user in users), key=str)


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------


class TestNotifierRegistry:
    def test_registered_strategies(self):
        assert notifiers.for_type("Card") is CardEventNotifier
        assert notifiers.for_type("Comment") is CommentEventNotifier

    def test_unknown_type_falls_back_to_default(self):
        assert notifiers.for_type("Checklist") is EventNotifier


# -----------------------------------------------------------------------------
# Recipient rules
# -----------------------------------------------------------------------------


class TestRecipients:
    def test_assignment_notifies_assignee(self, db_session, card, alice, carol):
        cards_service.cards.assign(db_session, str(card.id), str(carol.id), str(alice.id))
        event = _latest_event(db_session, "card_assigned")

        notifications = notifier_service.notify_recipients(db_session, event)

        assert _recipient_ids(notifications) == [carol.id]

    def test_self_assignment_notifies_nobody(self, db_session, card, alice):
        """The creator is excluded even when they are the assignee."""
        cards_service.cards.assign(db_session, str(card.id), str(alice.id), str(alice.id))
        event = _latest_event(db_session, "card_assigned")

        assert notifier_service.notify_recipients(db_session, event) == []

    def test_default_rule_notifies_board_watchers(self, db_session, card, alice, bob, dave):
        cards_service.cards.close(db_session, str(card.id), str(alice.id))
        event = _latest_event(db_session, "card_closed")

        notifications = notifier_service.notify_recipients(db_session, event)

        assert _recipient_ids(notifications) == _sorted_ids(bob, dave)

    def test_published_card_rule(
        self, db_session, board, draft_card, alice, bob, carol, dave
    ):
        """Watchers minus mentionees, plus assignees, minus the creator."""
        db_session.add(
            Mention(
                account_id=draft_card.account_id,
                source_type="Card",
                source_id=draft_card.id,
                mentioner_id=alice.id,
                mentionee_id=dave.id,
            )
        )
        db_session.commit()
        cards_service.cards.assign(
            db_session, str(draft_card.id), str(carol.id), str(alice.id)
        )
        cards_service.cards.publish(db_session, str(draft_card.id), str(alice.id))
        event = _latest_event(db_session, "card_published")

        notifications = notifier_service.notify_recipients(db_session, event)

        assert _recipient_ids(notifications) == _sorted_ids(bob, carol)

    def test_comment_rule_notifies_card_watchers(
        self, db_session, card, alice, bob, carol, dave, watch_card
    ):
        watch_card(card, alice)
        watch_card(card, carol)
        watch_card(card, dave, watching=False)
        comment = cards_service.comments.create(
            db_session, str(card.id), str(bob.id), "Looks good", mentionee_ids=[carol.id]
        )
        event = _latest_event(db_session, "comment_created")

        notifications = notifier_service.notify_recipients(db_session, event)

        assert event.eventable_id == comment.id
        assert _recipient_ids(notifications) == [alice.id]

    def test_inactive_users_are_skipped(self, db_session, card, alice, bob, dave):
        dave.is_active = False
        db_session.commit()
        cards_service.cards.close(db_session, str(card.id), str(alice.id))
        event = _latest_event(db_session, "card_closed")

        notifications = notifier_service.notify_recipients(db_session, event)

        assert _recipient_ids(notifications) == [bob.id]


# -----------------------------------------------------------------------------
# should_notify
# -----------------------------------------------------------------------------


class TestShouldNotify:
    def test_bookkeeping_action_notifies_nobody(self, db_session, card, alice):
        cards_service.cards.change_title(db_session, str(card.id), str(alice.id), "Renamed")
        event = _latest_event(db_session, "card_title_changed")

        assert notifier_service.notify_recipients(db_session, event) == []
        assert db_session.query(Notification).count() == 0

    def test_system_creator_notifies_nobody(self, db_session, card):
        cards_service.cards.auto_postpone(db_session, str(card.id))
        event = _latest_event(db_session, "card_auto_postponed")

        assert event.creator.role == UserRole.system
        assert notifier_service.notify_recipients(db_session, event) == []


# -----------------------------------------------------------------------------
# Idempotence
# -----------------------------------------------------------------------------


class TestIdempotence:
    def test_rerun_does_not_duplicate(self, db_session, card, alice, bob, dave):
        cards_service.cards.close(db_session, str(card.id), str(alice.id))
        event = _latest_event(db_session, "card_closed")

        first = notifier_service.notify_recipients(db_session, event)
        second = notifier_service.notify_recipients(db_session, event)

        assert [n.id for n in first] == [n.id for n in second]
        assert db_session.query(Notification).count() == 2

    def test_rerun_fills_in_missing_recipients(self, db_session, card, alice, bob, dave):
        cards_service.cards.close(db_session, str(card.id), str(alice.id))
        event = _latest_event(db_session, "card_closed")
        db_session.add(
            Notification(
                account_id=event.account_id,
                user_id=bob.id,
                event_id=event.id,
                creator_id=alice.id,
            )
        )
        db_session.commit()

        notifications = notifier_service.notify_recipients(db_session, event)

        assert _recipient_ids(notifications) == _sorted_ids(bob, dave)
        assert db_session.query(Notification).count() == 2
