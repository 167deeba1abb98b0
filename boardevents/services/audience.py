"""Who is involved with a board entity: watchers, assignees and mentionees.

Every helper returns active users only.
"""

from sqlalchemy.orm import Session

from boardevents.models.account import User
from boardevents.models.board import Access, Involvement
from boardevents.models.card import Assignment, Mention, Watch


def _active(query):
    return query.filter(User.is_active.is_(True)).all()


def board_watchers(db: Session, board_id) -> list[User]:
    return _active(
        db.query(User)
        .join(Access, Access.user_id == User.id)
        .filter(Access.board_id == board_id)
        .filter(Access.involvement == Involvement.watching)
    )


def card_watchers(db: Session, card_id) -> list[User]:
    return _active(
        db.query(User)
        .join(Watch, Watch.user_id == User.id)
        .filter(Watch.card_id == card_id)
        .filter(Watch.watching.is_(True))
    )


def card_assignees(db: Session, card_id) -> list[User]:
    return _active(
        db.query(User)
        .join(Assignment, Assignment.assignee_id == User.id)
        .filter(Assignment.card_id == card_id)
    )


def mentionees(db: Session, source) -> list[User]:
    """Users mentioned from ``source`` (a card or a comment)."""
    return _active(
        db.query(User)
        .join(Mention, Mention.mentionee_id == User.id)
        .filter(Mention.source_type == source.eventable_type())
        .filter(Mention.source_id == source.id)
    )


def users_by_ids(db: Session, user_ids) -> list[User]:
    if not user_ids:
        return []
    return _active(db.query(User).filter(User.id.in_(list(user_ids))))
