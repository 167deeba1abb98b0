from datetime import UTC, datetime

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload

from boardevents.models.account import User
from boardevents.models.notification import Notification
from boardevents.services.common import apply_pagination, coerce_uuid, get_or_404
from boardevents.services.response import ListResponseMixin


class Notifications(ListResponseMixin):
    @staticmethod
    def get(db: Session, notification_id: str):
        notification = db.get(Notification, coerce_uuid(notification_id))
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")
        return notification

    @staticmethod
    def list(
        db: Session,
        user_id: str,
        unread: bool | None,
        limit: int,
        offset: int,
    ):
        get_or_404(db, User, user_id)
        query = (
            db.query(Notification)
            .options(selectinload(Notification.event))
            .filter(Notification.user_id == coerce_uuid(user_id))
        )
        if unread is True:
            query = query.filter(Notification.read_at.is_(None))
        elif unread is False:
            query = query.filter(Notification.read_at.is_not(None))
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def mark_read(db: Session, notification_id: str):
        notification = Notifications.get(db, notification_id)
        if notification.read_at is None:
            notification.read_at = datetime.now(UTC)
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def mark_unread(db: Session, notification_id: str):
        notification = Notifications.get(db, notification_id)
        if notification.read_at is not None:
            notification.read_at = None
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id: str) -> int:
        get_or_404(db, User, user_id)
        result = db.execute(
            update(Notification)
            .where(Notification.user_id == coerce_uuid(user_id))
            .where(Notification.read_at.is_(None))
            .values(read_at=datetime.now(UTC))
            .execution_options(synchronize_session="fetch")
        )
        db.commit()
        return result.rowcount


notifications = Notifications()
