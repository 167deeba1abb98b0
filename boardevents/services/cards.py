"""Card and comment operations that record events.

Every operation runs in a single transaction: the state change, its event
and the event's synchronous reaction (the system comment) commit together,
and notification and webhook fanout is queued only once that commit
succeeds.
"""

import logging
from datetime import UTC, datetime

from fastapi import HTTPException
from sqlalchemy import delete, func
from sqlalchemy.orm import Session

from boardevents.models.account import User
from boardevents.models.board import Board
from boardevents.models.card import Assignment, Card, CardStatus, Comment, Mention, Watch
from boardevents.services.common import coerce_uuid, get_or_404, transaction
from boardevents.services.events.store import delete_events_for
from boardevents.services.events.system_commenter import system_user_for

logger = logging.getLogger(__name__)


def _user_in_account(db: Session, user_id, account_id) -> User:
    user = get_or_404(db, User, user_id, detail="User not found")
    if user.account_id != account_id:
        raise HTTPException(status_code=400, detail="User belongs to another account")
    return user


def _locked_card(db: Session, card_id) -> Card:
    card = (
        db.query(Card)
        .filter(Card.id == coerce_uuid(card_id))
        .with_for_update()
        .first()
    )
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    return card


def _watch(db: Session, card: Card, user: User) -> None:
    watch = (
        db.query(Watch)
        .filter(Watch.card_id == card.id)
        .filter(Watch.user_id == user.id)
        .first()
    )
    if watch is None:
        db.add(Watch(account_id=card.account_id, card=card, user=user, watching=True))
    else:
        watch.watching = True


def _mention(db: Session, source, mentioner: User, mentionee_ids) -> None:
    for mentionee_id in dict.fromkeys(coerce_uuid(value) for value in mentionee_ids):
        mentionee = _user_in_account(db, mentionee_id, source.account_id)
        db.add(
            Mention(
                account_id=source.account_id,
                source_type=source.eventable_type(),
                source_id=source.id,
                mentioner_id=mentioner.id,
                mentionee_id=mentionee.id,
            )
        )


def _next_number(db: Session, account_id) -> int:
    current = (
        db.query(func.max(Card.number)).filter(Card.account_id == account_id).scalar()
    )
    return (current or 0) + 1


def _publish(db: Session, card: Card, user: User) -> None:
    card.status = CardStatus.published
    card.last_active_at = datetime.now(UTC)
    db.flush()
    card.track_event(db, "published", creator=user)


class Cards:
    @staticmethod
    def get(db: Session, card_id: str):
        return get_or_404(db, Card, card_id, detail="Card not found")

    @staticmethod
    def create(
        db: Session,
        board_id: str,
        creator_id: str,
        title: str,
        publish: bool = False,
        mentionee_ids=(),
    ):
        board = get_or_404(db, Board, board_id, detail="Board not found")
        with transaction(db):
            creator = _user_in_account(db, creator_id, board.account_id)
            card = Card(
                account_id=board.account_id,
                board=board,
                creator=creator,
                number=_next_number(db, board.account_id),
                title=title,
                status=CardStatus.drafted,
            )
            db.add(card)
            db.flush()
            _mention(db, card, creator, mentionee_ids)
            _watch(db, card, creator)
            if publish:
                db.flush()
                _publish(db, card, creator)
        return card

    @staticmethod
    def publish(db: Session, card_id: str, user_id: str):
        with transaction(db):
            card = _locked_card(db, card_id)
            if card.published:
                raise HTTPException(status_code=409, detail="Card is already published")
            user = _user_in_account(db, user_id, card.account_id)
            _publish(db, card, user)
        return card

    @staticmethod
    def close(db: Session, card_id: str, user_id: str):
        with transaction(db):
            card = _locked_card(db, card_id)
            if card.closed:
                raise HTTPException(status_code=409, detail="Card is already closed")
            user = _user_in_account(db, user_id, card.account_id)
            card.closed_at = datetime.now(UTC)
            card.closed_by = user
            card.postponed_at = None
            card.track_event(db, "closed", creator=user)
        return card

    @staticmethod
    def reopen(db: Session, card_id: str, user_id: str):
        with transaction(db):
            card = _locked_card(db, card_id)
            if not card.closed and not card.postponed:
                raise HTTPException(status_code=409, detail="Card is not closed")
            user = _user_in_account(db, user_id, card.account_id)
            card.closed_at = None
            card.closed_by = None
            card.postponed_at = None
            card.track_event(db, "reopened", creator=user)
        return card

    @staticmethod
    def postpone(db: Session, card_id: str, user_id: str):
        with transaction(db):
            card = _locked_card(db, card_id)
            if card.postponed:
                raise HTTPException(status_code=409, detail="Card is already postponed")
            user = _user_in_account(db, user_id, card.account_id)
            card.postponed_at = datetime.now(UTC)
            card.closed_at = None
            card.closed_by = None
            card.track_event(db, "postponed", creator=user)
        return card

    @staticmethod
    def auto_postpone(db: Session, card_id: str):
        """Postpone an inactive card on behalf of the account's system user."""
        with transaction(db):
            card = _locked_card(db, card_id)
            if card.postponed or card.closed:
                return card
            system_user = system_user_for(db, card.account_id)
            card.postponed_at = datetime.now(UTC)
            card.track_event(db, "auto_postponed", creator=system_user)
        return card

    @staticmethod
    def assign(db: Session, card_id: str, assignee_id: str, assigner_id: str):
        with transaction(db):
            card = get_or_404(db, Card, card_id, detail="Card not found")
            assignee = _user_in_account(db, assignee_id, card.account_id)
            assigner = _user_in_account(db, assigner_id, card.account_id)
            existing = (
                db.query(Assignment)
                .filter(Assignment.card_id == card.id)
                .filter(Assignment.assignee_id == assignee.id)
                .first()
            )
            if existing:
                raise HTTPException(status_code=409, detail="User is already assigned")
            db.add(
                Assignment(
                    account_id=card.account_id,
                    card=card,
                    assignee=assignee,
                    assigner_id=assigner.id,
                )
            )
            _watch(db, card, assignee)
            db.flush()
            card.track_event(
                db, "assigned", creator=assigner, assignee_ids=[str(assignee.id)]
            )
        return card

    @staticmethod
    def unassign(db: Session, card_id: str, assignee_id: str, user_id: str):
        with transaction(db):
            card = get_or_404(db, Card, card_id, detail="Card not found")
            user = _user_in_account(db, user_id, card.account_id)
            assignment = (
                db.query(Assignment)
                .filter(Assignment.card_id == card.id)
                .filter(Assignment.assignee_id == coerce_uuid(assignee_id))
                .first()
            )
            if not assignment:
                raise HTTPException(status_code=404, detail="Assignment not found")
            assignee_ids = [str(assignment.assignee_id)]
            db.delete(assignment)
            db.flush()
            card.track_event(db, "unassigned", creator=user, assignee_ids=assignee_ids)
        return card

    @staticmethod
    def change_title(db: Session, card_id: str, user_id: str, title: str):
        with transaction(db):
            card = get_or_404(db, Card, card_id, detail="Card not found")
            user = _user_in_account(db, user_id, card.account_id)
            old_title = card.title
            if old_title == title:
                return card
            card.title = title
            card.track_event(
                db, "title_changed", creator=user, old_title=old_title, new_title=title
            )
        return card

    @staticmethod
    def move_to_board(db: Session, card_id: str, user_id: str, board_id: str):
        with transaction(db):
            card = get_or_404(db, Card, card_id, detail="Card not found")
            user = _user_in_account(db, user_id, card.account_id)
            new_board = get_or_404(db, Board, board_id, detail="Board not found")
            if new_board.account_id != card.account_id:
                raise HTTPException(status_code=400, detail="Board belongs to another account")
            old_board = card.board
            if old_board.id == new_board.id:
                return card
            card.board = new_board
            db.flush()
            card.track_event(
                db,
                "board_changed",
                creator=user,
                board=new_board,
                old_board=old_board.name,
                new_board=new_board.name,
            )
        return card

    @staticmethod
    def destroy(db: Session, card_id: str):
        """Delete a card with its comments, mentions and every related event."""
        with transaction(db):
            card = get_or_404(db, Card, card_id, detail="Card not found")
            comment_ids = []
            for comment in card.comments:
                delete_events_for(db, comment)
                comment_ids.append(comment.id)
            delete_events_for(db, card)
            db.execute(
                delete(Mention).where(
                    (Mention.source_id == card.id) | Mention.source_id.in_(comment_ids)
                )
            )
            db.delete(card)
        logger.info(f"Destroyed card {card_id}")


class Comments:
    @staticmethod
    def create(
        db: Session,
        card_id: str,
        creator_id: str,
        body: str,
        mentionee_ids=(),
    ):
        with transaction(db):
            card = get_or_404(db, Card, card_id, detail="Card not found")
            creator = _user_in_account(db, creator_id, card.account_id)
            comment = Comment(
                account_id=card.account_id,
                card=card,
                creator=creator,
                body=body,
            )
            db.add(comment)
            db.flush()
            _mention(db, comment, creator, mentionee_ids)
            _watch(db, card, creator)
            db.flush()
            comment.track_event(db, "created", creator=creator)
        return comment


cards = Cards()
comments = Comments()
