"""Notifications for committed events.

Each eventable type has a notifier strategy that decides who hears about an
event. Strategies are registered explicitly in ``notifiers``; types without
one use ``EventNotifier``, which notifies the board's watchers.

Whatever the strategy, the event's creator never receives a notification,
and recipients are deduplicated and ordered by user id.
"""

import logging

from sqlalchemy.orm import Session

from boardevents.metrics import NOTIFICATIONS_CREATED
from boardevents.models.account import User
from boardevents.models.card import Card, Comment
from boardevents.models.event import Event
from boardevents.models.notification import Notification
from boardevents.services import audience
from boardevents.services.common import coerce_uuid
from boardevents.services.events.types import CardAction, CommentAction

logger = logging.getLogger(__name__)

# Actions that record history but are not worth interrupting anyone for.
BOOKKEEPING_ACTIONS = frozenset({CardAction.title_changed})


def _user_key(user: User) -> str:
    return str(user.id)


def _without(users: list[User], excluded: list[User]) -> list[User]:
    excluded_ids = {user.id for user in excluded}
    return [user for user in users if user.id not in excluded_ids]


class EventNotifier:
    """Default strategy: assignees for assignments, board watchers otherwise."""

    def __init__(self, db: Session, event: Event):
        self.db = db
        self.event = event

    @property
    def creator(self) -> User | None:
        return self.event.creator

    def should_notify(self) -> bool:
        if self.creator is None or self.creator.is_system:
            return False
        return self.event.action not in BOOKKEEPING_ACTIONS

    def recipients(self) -> list[User]:
        candidates = self.candidates()
        unique = {user.id: user for user in candidates}
        if self.event.creator_id is not None:
            unique.pop(self.event.creator_id, None)
        return sorted(unique.values(), key=_user_key)

    def candidates(self) -> list[User]:
        if self.event.action.endswith("_assigned"):
            return self.assignees()
        return self.board_watchers()

    def assignees(self) -> list[User]:
        ids = [coerce_uuid(value) for value in self.event.assignee_ids]
        return audience.users_by_ids(self.db, ids)

    def board_watchers(self) -> list[User]:
        return audience.board_watchers(self.db, self.event.board_id)


class CardEventNotifier(EventNotifier):
    @property
    def card(self) -> Card | None:
        return self.event.eventable

    def candidates(self) -> list[User]:
        if self.event.action == CardAction.published and self.card is not None:
            watchers = _without(
                self.board_watchers(), audience.mentionees(self.db, self.card)
            )
            return watchers + audience.card_assignees(self.db, self.card.id)
        return super().candidates()


class CommentEventNotifier(EventNotifier):
    @property
    def comment(self) -> Comment | None:
        return self.event.eventable

    def candidates(self) -> list[User]:
        if self.event.action == CommentAction.created and self.comment is not None:
            return _without(
                audience.card_watchers(self.db, self.comment.card_id),
                audience.mentionees(self.db, self.comment),
            )
        return super().candidates()


class NotifierRegistry:
    """Eventable type name to notifier strategy, with a default fallback."""

    def __init__(self, default: type[EventNotifier] = EventNotifier):
        self.default = default
        self._notifiers: dict[str, type[EventNotifier]] = {}

    def register(self, type_name: str, notifier_cls: type[EventNotifier]) -> None:
        self._notifiers[type_name] = notifier_cls

    def for_type(self, type_name: str) -> type[EventNotifier]:
        return self._notifiers.get(type_name, self.default)

    def for_event(self, db: Session, event: Event) -> EventNotifier:
        return self.for_type(event.eventable_type)(db, event)


notifiers = NotifierRegistry()
notifiers.register(Card.eventable_type(), CardEventNotifier)
notifiers.register(Comment.eventable_type(), CommentEventNotifier)


def notify_recipients(db: Session, event: Event) -> list[Notification]:
    """Create the event's notifications and return them ordered by user id.

    Safe to run more than once for the same event: users who already have a
    notification for it are not notified again.
    """
    notifier = notifiers.for_event(db, event)
    if not notifier.should_notify():
        logger.debug(f"Event {event.id} ({event.action}) does not notify")
        return []

    recipients = notifier.recipients()
    if not recipients:
        return []

    existing = {
        notification.user_id: notification
        for notification in db.query(Notification)
        .filter(Notification.event_id == event.id)
        .filter(Notification.user_id.in_([user.id for user in recipients]))
        .all()
    }
    created = 0
    for user in recipients:
        if user.id in existing:
            continue
        notification = Notification(
            account_id=event.account_id,
            user_id=user.id,
            event_id=event.id,
            creator_id=event.creator_id,
        )
        db.add(notification)
        existing[user.id] = notification
        created += 1
    db.commit()

    if created:
        NOTIFICATIONS_CREATED.inc(created)
        logger.info(f"Created {created} notification(s) for event {event.id}")
    return [existing[user.id] for user in recipients]
