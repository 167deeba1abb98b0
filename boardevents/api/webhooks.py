from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from boardevents.db import get_db
from boardevents.schemas.common import ListResponse
from boardevents.schemas.webhook import (
    WebhookCreate,
    WebhookCreated,
    WebhookDeliveryRead,
    WebhookRead,
    WebhookUpdate,
)
from boardevents.services import webhook as webhook_service

router = APIRouter(tags=["webhooks"])


@router.post(
    "/boards/{board_id}/webhooks",
    response_model=WebhookCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_webhook(board_id: str, payload: WebhookCreate, db: Session = Depends(get_db)):
    return webhook_service.webhooks.create(db, board_id, payload)


@router.get("/boards/{board_id}/webhooks", response_model=ListResponse[WebhookRead])
def list_webhooks(
    board_id: str,
    active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return webhook_service.webhooks.list_response(
        db, board_id, active, order_by, order_dir, limit=limit, offset=offset
    )


@router.get("/webhooks/{webhook_id}", response_model=WebhookRead)
def get_webhook(webhook_id: str, db: Session = Depends(get_db)):
    return webhook_service.webhooks.get(db, webhook_id)


@router.patch("/webhooks/{webhook_id}", response_model=WebhookRead)
def update_webhook(webhook_id: str, payload: WebhookUpdate, db: Session = Depends(get_db)):
    return webhook_service.webhooks.update(db, webhook_id, payload)


@router.delete("/webhooks/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_webhook(webhook_id: str, db: Session = Depends(get_db)):
    webhook_service.webhooks.delete(db, webhook_id)


@router.post("/webhooks/{webhook_id}/activate", response_model=WebhookRead)
def activate_webhook(webhook_id: str, db: Session = Depends(get_db)):
    return webhook_service.webhooks.activate(db, webhook_id)


@router.get(
    "/webhooks/{webhook_id}/deliveries",
    response_model=ListResponse[WebhookDeliveryRead],
)
def list_webhook_deliveries(
    webhook_id: str,
    state: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return webhook_service.webhook_deliveries.list_response(
        db, webhook_id, state, limit=limit, offset=offset
    )
