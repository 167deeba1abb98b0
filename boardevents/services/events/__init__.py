"""Event system module.

Records state changes of board entities as events and fans them out to the
audit trail (system comments), notifications and webhooks.

Usage:
    from boardevents.services.events import record_event

    # Through the Eventable mixin, inside a business transaction:
    card.track_event(db, "assigned", creator=user, assignee_ids=[str(u.id)])

    # Or directly:
    record_event(db, action="card_closed", eventable=card, creator=user, board=card.board)
"""

from boardevents.services.events.description import describe
from boardevents.services.events.query import events
from boardevents.services.events.store import delete_events_for, events_for, record_event
from boardevents.services.events.types import CardAction, CommentAction, InvalidEventError

__all__ = [
    "CardAction",
    "CommentAction",
    "InvalidEventError",
    "delete_events_for",
    "describe",
    "events",
    "events_for",
    "record_event",
]
