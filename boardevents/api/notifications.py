from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from boardevents.db import get_db
from boardevents.schemas.common import ListResponse
from boardevents.schemas.notification import MarkAllReadResponse, NotificationRead
from boardevents.services import notification as notification_service

router = APIRouter(tags=["notifications"])


@router.get(
    "/users/{user_id}/notifications",
    response_model=ListResponse[NotificationRead],
)
def list_notifications(
    user_id: str,
    unread: bool | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return notification_service.notifications.list_response(
        db, user_id, unread, limit=limit, offset=offset
    )


@router.post("/notifications/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(notification_id: str, db: Session = Depends(get_db)):
    return notification_service.notifications.mark_read(db, notification_id)


@router.post("/notifications/{notification_id}/unread", response_model=NotificationRead)
def mark_notification_unread(notification_id: str, db: Session = Depends(get_db)):
    return notification_service.notifications.mark_unread(db, notification_id)


@router.post(
    "/users/{user_id}/notifications/read-all",
    response_model=MarkAllReadResponse,
)
def mark_all_notifications_read(user_id: str, db: Session = Depends(get_db)):
    updated = notification_service.notifications.mark_all_read(db, user_id)
    return {"updated": updated}
