"""Event store: records events and schedules their fanout after commit.

``record_event`` runs inside the caller's transaction. The event row and the
eventable's synchronous reaction are flushed together with the caller's own
changes, so a failure anywhere rolls all of it back.

The asynchronous consumers (notifications and webhooks) are only scheduled
once the session's outermost transaction commits. Pending event ids live in
``Session.info`` until then; rolling back the transaction or savepoint that
recorded them discards them.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, event as sa_event, select
from sqlalchemy.orm import Session

from boardevents.metrics import EVENTS_TRACKED
from boardevents.models.event import Event
from boardevents.models.eventable import Eventable, eventables
from boardevents.services.events.types import InvalidEventError, serialize

logger = logging.getLogger(__name__)

PENDING_FANOUT_KEY = "boardevents.pending_fanout"


def _validate_eventable(eventable) -> None:
    if not isinstance(eventable, Eventable) or not eventables.is_registered(type(eventable)):
        raise InvalidEventError(f"{type(eventable).__name__} is not a registered eventable")


def _validate_action(action) -> None:
    if not action or not action.strip():
        raise InvalidEventError("action is required")


def _validate(eventable, creator, board) -> None:
    if getattr(eventable, "id", None) is None:
        raise InvalidEventError("eventable must be persisted before tracking events")
    if creator is None or creator.id is None:
        raise InvalidEventError("creator is required")
    if board is None or board.id is None:
        raise InvalidEventError("board is required")
    account_ids = {board.account_id, creator.account_id}
    eventable_account_id = getattr(eventable, "account_id", None)
    if eventable_account_id is not None:
        account_ids.add(eventable_account_id)
    if len(account_ids) != 1:
        raise InvalidEventError("creator, board and eventable must belong to one account")


def record_event(
    db: Session,
    *,
    action: str,
    eventable: Eventable,
    creator,
    board,
    particulars: dict[str, Any] | None = None,
) -> Event | None:
    """Record an event for ``eventable`` and run its synchronous reaction.

    Returns None without writing anything when the eventable declines to
    track events in its current state.

    Raises:
        InvalidEventError: missing or inconsistent arguments
    """
    _validate_action(action)
    _validate_eventable(eventable)
    if not eventable.should_track_event():
        logger.debug(
            f"Skipping {action} for {type(eventable).__name__} {eventable.id}: not tracked"
        )
        return None

    _validate(eventable, creator, board)

    event = Event(
        account_id=board.account_id,
        board_id=board.id,
        creator_id=creator.id,
        eventable_type=eventable.eventable_type(),
        eventable_id=eventable.id,
        action=action,
        particulars=serialize(particulars or {}),
        created_at=datetime.now(UTC),
    )
    event._eventable = eventable
    db.add(event)
    db.flush()

    eventable.on_event_created(db, event)
    db.flush()

    recorded_in = db.get_nested_transaction() or db.get_transaction()
    db.info.setdefault(PENDING_FANOUT_KEY, []).append(
        (event.id, event.action, recorded_in)
    )
    logger.debug(f"Recorded event {action} (id={event.id})")
    return event


def schedule_fanout(event_ids) -> None:
    """Queue notification and webhook fanout for committed events."""
    from boardevents.tasks.events import dispatch_webhooks, notify_recipients

    for event_id in event_ids:
        try:
            notify_recipients.delay(str(event_id))
            dispatch_webhooks.delay(str(event_id))
        except Exception as exc:
            logger.error(f"Failed to queue fanout for event {event_id}: {exc}")


@sa_event.listens_for(Session, "after_commit")
def _schedule_pending_fanout(session: Session) -> None:
    pending = session.info.pop(PENDING_FANOUT_KEY, None)
    if not pending:
        return
    for _, action, _ in pending:
        EVENTS_TRACKED.labels(action=action).inc()
    schedule_fanout([event_id for event_id, _, _ in pending])
    logger.info(f"Scheduled fanout for {len(pending)} event(s)")


def _within(transaction, ancestor) -> bool:
    while transaction is not None:
        if transaction is ancestor:
            return True
        transaction = transaction.parent
    return False


@sa_event.listens_for(Session, "after_soft_rollback")
def _discard_pending_fanout(session: Session, previous_transaction) -> None:
    """Drop events recorded in the rolled back transaction or any savepoint inside it."""
    pending = session.info.get(PENDING_FANOUT_KEY)
    if not pending:
        return
    kept = [entry for entry in pending if not _within(entry[2], previous_transaction)]
    discarded = len(pending) - len(kept)
    if kept:
        session.info[PENDING_FANOUT_KEY] = kept
    else:
        session.info.pop(PENDING_FANOUT_KEY, None)
    if discarded:
        logger.debug(f"Discarded fanout for {discarded} rolled back event(s)")


def events_for(db: Session, eventable: Eventable) -> list[Event]:
    return list(
        db.scalars(
            select(Event)
            .where(Event.eventable_type == eventable.eventable_type())
            .where(Event.eventable_id == eventable.id)
            .order_by(Event.created_at.asc(), Event.id.desc())
        )
    )


def delete_events_for(db: Session, eventable: Eventable) -> int:
    """Delete an entity's events along with their notifications and deliveries."""
    from boardevents.models.notification import Notification
    from boardevents.models.webhook import WebhookDelivery

    event_ids = select(Event.id).where(
        Event.eventable_type == eventable.eventable_type(),
        Event.eventable_id == eventable.id,
    )
    db.execute(delete(Notification).where(Notification.event_id.in_(event_ids)))
    db.execute(delete(WebhookDelivery).where(WebhookDelivery.event_id.in_(event_ids)))
    result = db.execute(
        delete(Event).where(
            Event.eventable_type == eventable.eventable_type(),
            Event.eventable_id == eventable.id,
        )
    )
    return result.rowcount
