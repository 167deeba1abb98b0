"""Audit-trail narratives written as system comments on cards.

``render`` is a pure function of the event's action and particulars; the
names it needs are passed in. ``create_system_comment`` resolves those names,
renders, and stores the result as a comment by the account's system user,
timestamped with the event's own ``created_at``.
"""

import logging
from collections.abc import Callable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from boardevents.models.account import User, UserRole
from boardevents.models.card import Card, Comment
from boardevents.models.event import Event
from boardevents.services.common import coerce_uuid
from boardevents.services.events.types import CardAction

logger = logging.getLogger(__name__)

SYSTEM_USER_NAME = "System"


def _names(user_ids, users_by_id: Mapping[str, str]) -> str:
    names = [users_by_id.get(str(user_id), "someone") for user_id in user_ids]
    if not names:
        return "nobody"
    if len(names) == 1:
        return names[0]
    return f"{', '.join(names[:-1])} and {names[-1]}"


def _assigned(creator: str, event: Event, users_by_id) -> str:
    return f"{creator} assigned this to {_names(event.assignee_ids, users_by_id)}."


def _unassigned(creator: str, event: Event, users_by_id) -> str:
    return f"{creator} unassigned {_names(event.assignee_ids, users_by_id)}."


def _title_changed(creator: str, event: Event, users_by_id) -> str:
    particulars = event.particulars or {}
    return (
        f'{creator} changed the title from "{particulars.get("old_title", "")}" '
        f'to "{particulars.get("new_title", "")}".'
    )


def _board_changed(creator: str, event: Event, users_by_id) -> str:
    particulars = event.particulars or {}
    return (
        f'{creator} moved this from "{particulars.get("old_board", "")}" '
        f'to "{particulars.get("new_board", "")}".'
    )


NARRATIVES: dict[str, Callable[[str, Event, Mapping[str, str]], str]] = {
    CardAction.assigned: _assigned,
    CardAction.unassigned: _unassigned,
    CardAction.closed: lambda creator, event, users: f"{creator} moved this to Done.",
    CardAction.reopened: lambda creator, event, users: f"{creator} reopened this.",
    CardAction.postponed: lambda creator, event, users: f"{creator} moved this to Not Now.",
    CardAction.auto_postponed: lambda creator, event, users: (
        "Moved to Not Now due to inactivity."
    ),
    CardAction.title_changed: _title_changed,
    CardAction.board_changed: _board_changed,
}


def render(event: Event, users_by_id: Mapping[str, str]) -> str | None:
    """Return the audit narrative for ``event``, or None if it has none.

    Args:
        event: The event to describe
        users_by_id: Display names keyed by user id string; must contain the
            creator and any user referenced by the particulars
    """
    narrative = NARRATIVES.get(event.action)
    if narrative is None:
        return None
    creator = users_by_id.get(str(event.creator_id), "someone")
    return narrative(creator, event, users_by_id)


def system_user_for(db: Session, account_id) -> User:
    user = db.scalars(
        select(User)
        .where(User.account_id == account_id)
        .where(User.role == UserRole.system)
        .limit(1)
    ).first()
    if user is None:
        user = User(account_id=account_id, name=SYSTEM_USER_NAME, role=UserRole.system)
        db.add(user)
        db.flush()
    return user


def create_system_comment(db: Session, event: Event) -> Comment | None:
    """Store the narrative for ``event`` on its card."""
    if event.action not in NARRATIVES:
        return None
    card = event.eventable
    if not isinstance(card, Card):
        return None

    user_ids = [event.creator_id, *(coerce_uuid(value) for value in event.assignee_ids)]
    users = db.scalars(select(User).where(User.id.in_(user_ids)))
    users_by_id = {str(user.id): user.name for user in users}
    body = render(event, users_by_id)
    if body is None:
        return None

    comment = Comment(
        account_id=event.account_id,
        card=card,
        creator=system_user_for(db, event.account_id),
        body=body,
        is_system=True,
        created_at=event.created_at,
    )
    db.add(comment)
    logger.debug(f"System comment for {event.action} on card {card.id}")
    return comment
