"""Outbound webhooks for board events.

``dispatch_webhooks`` turns a committed event into one pending delivery per
matching subscription and queues them; ``deliver`` performs a single signed
HTTP POST and keeps the webhook's delinquency tracker up to date. Webhooks
that keep failing for long enough are deactivated until an admin activates
them again.
"""

import hashlib
import hmac
import json
import logging
import secrets
from datetime import UTC, datetime, timedelta

import httpx
from fastapi import HTTPException
from sqlalchemy import delete
from sqlalchemy.orm import Session

from boardevents.config import settings
from boardevents.metrics import WEBHOOK_DELIVERIES, WEBHOOKS_DEACTIVATED
from boardevents.models.board import Board
from boardevents.models.event import Event
from boardevents.models.webhook import (
    Webhook,
    WebhookDelinquencyTracker,
    WebhookDelivery,
    WebhookDeliveryState,
)
from boardevents.schemas.webhook import WebhookCreate, WebhookUpdate
from boardevents.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
    validate_enum,
)
from boardevents.services.events.types import CardAction, CommentAction
from boardevents.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

# Actions external systems may subscribe to.
PERMITTED_ACTIONS = (
    CardAction.assigned,
    CardAction.unassigned,
    CardAction.closed,
    CardAction.reopened,
    CardAction.postponed,
    CardAction.auto_postponed,
    CardAction.board_changed,
    CardAction.published,
    CommentAction.created,
)

# A delivery left in_progress by a crashed worker is picked up again.
UNFINISHED_STATES = (WebhookDeliveryState.pending, WebhookDeliveryState.in_progress)


def _compute_signature(payload: str, secret: str) -> str:
    """Compute HMAC-SHA256 signature for payload verification."""
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def _user_dict(user) -> dict | None:
    if user is None:
        return None
    return {"id": str(user.id), "name": user.name}


def serialize_event(event: Event) -> dict:
    """Wire payload for an event."""
    eventable = event.eventable
    if eventable is not None:
        eventable_data = eventable.to_webhook_dict()
    else:
        eventable_data = {"type": event.eventable_type, "id": str(event.eventable_id)}
    board = event.board
    return {
        "id": str(event.id),
        "action": event.action,
        "created_at": event.created_at.isoformat() if event.created_at else None,
        "particulars": event.particulars or {},
        "account_id": str(event.account_id),
        "board": {"id": str(board.id), "name": board.name} if board else None,
        "creator": _user_dict(event.creator),
        "eventable": eventable_data,
    }


def matching_webhooks(db: Session, event: Event) -> list[Webhook]:
    if event.action not in PERMITTED_ACTIONS:
        return []
    webhooks = (
        db.query(Webhook)
        .filter(Webhook.board_id == event.board_id)
        .filter(Webhook.active.is_(True))
        .order_by(Webhook.created_at.asc())
        .all()
    )
    return [webhook for webhook in webhooks if webhook.subscribes_to(event.action)]


def dispatch_webhooks(db: Session, event: Event) -> list[WebhookDelivery]:
    """Create a pending delivery per matching webhook and queue the unfinished ones.

    Deliveries are unique per ``(webhook, event)``, so running this again for
    the same event only queues what is still pending or in progress.
    """
    if event.action not in PERMITTED_ACTIONS:
        logger.debug(f"Action {event.action} is not delivered to webhooks")
        return []

    deliveries = {
        delivery.webhook_id: delivery
        for delivery in db.query(WebhookDelivery)
        .filter(WebhookDelivery.event_id == event.id)
        .all()
    }
    for webhook in matching_webhooks(db, event):
        if webhook.id in deliveries:
            continue
        delivery = WebhookDelivery(
            account_id=event.account_id,
            webhook_id=webhook.id,
            event_id=event.id,
            state=WebhookDeliveryState.pending,
        )
        db.add(delivery)
        deliveries[webhook.id] = delivery
    db.commit()

    pending_ids = [
        str(delivery.id)
        for delivery in deliveries.values()
        if delivery.state in UNFINISHED_STATES
    ]
    if pending_ids:
        try:
            from boardevents.tasks.webhooks import deliver_webhook

            for delivery_id in pending_ids:
                deliver_webhook.delay(delivery_id)
            logger.info(
                f"Queued {len(pending_ids)} webhook deliveries for event {event.id}"
            )
        except Exception as exc:
            logger.error(f"Failed to queue webhook delivery tasks: {exc}")
    return list(deliveries.values())


def _tracker_for(db: Session, webhook: Webhook) -> WebhookDelinquencyTracker:
    tracker = webhook.delinquency_tracker
    if tracker is None:
        tracker = WebhookDelinquencyTracker(webhook=webhook, consecutive_failures_count=0)
        db.add(tracker)
    return tracker


def track_delinquency(db: Session, webhook: Webhook, succeeded: bool, now=None) -> None:
    """Reset the tracker on success; count the failure and maybe deactivate."""
    now = now or datetime.now(UTC)
    tracker = _tracker_for(db, webhook)
    if succeeded:
        tracker.reset()
        return
    tracker.record_failure(now)
    duration = timedelta(minutes=settings.webhook_delinquency_minutes)
    if webhook.active and tracker.is_delinquent(
        now, settings.webhook_delinquency_threshold, duration
    ):
        webhook.active = False
        WEBHOOKS_DEACTIVATED.inc()
        logger.warning(
            f"Deactivated webhook {webhook.id} after "
            f"{tracker.consecutive_failures_count} consecutive failures"
        )


def deliver(db: Session, delivery: WebhookDelivery, client: httpx.Client) -> WebhookDelivery:
    """POST one delivery to its webhook and record the outcome.

    Only completed and errored deliveries are final; an in_progress delivery
    is one whose previous attempt died before recording an outcome, so it is
    sent again.
    """
    if delivery.state not in UNFINISHED_STATES:
        logger.info(f"Delivery {delivery.id} is {delivery.state.value}, skipping")
        return delivery

    webhook = delivery.webhook
    if not webhook.active:
        logger.info(f"Webhook {webhook.id} is inactive, skipping delivery")
        delivery.state = WebhookDeliveryState.errored
        delivery.response = {"error": "Webhook is inactive"}
        db.commit()
        return delivery

    delivery.state = WebhookDeliveryState.in_progress
    db.commit()

    payload = serialize_event(delivery.event)
    payload_json = json.dumps(payload)
    now = datetime.now(UTC)
    headers = {
        "Content-Type": "application/json",
        "User-Agent": settings.webhook_user_agent,
        "X-Webhook-Event": delivery.event.action,
        "X-Webhook-Delivery-Id": str(delivery.id),
        "X-Webhook-Timestamp": now.isoformat(),
        "X-Webhook-Signature": _compute_signature(payload_json, webhook.signing_secret),
    }
    delivery.request = {"url": webhook.url, "headers": headers, "body": payload}

    logger.info(f"Delivering webhook {delivery.id} to {webhook.url}")
    try:
        response = client.post(webhook.url, content=payload_json, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning(f"Webhook delivery {delivery.id} to {webhook.url} failed: {exc}")
        delivery.response = {"error": str(exc) or type(exc).__name__}
        delivery.state = WebhookDeliveryState.errored
    else:
        delivery.response = {"code": response.status_code, "body": response.text[:2000]}
        if response.is_success:
            delivery.state = WebhookDeliveryState.completed
        else:
            delivery.state = WebhookDeliveryState.errored
            logger.warning(
                f"Webhook delivery {delivery.id} to {webhook.url} "
                f"returned HTTP {response.status_code}"
            )

    track_delinquency(db, webhook, delivery.succeeded, now)
    db.commit()
    WEBHOOK_DELIVERIES.labels(state=delivery.state.value).inc()
    return delivery


def cleanup_stale_deliveries(db: Session, now=None) -> int:
    """Delete deliveries older than the retention window."""
    now = now or datetime.now(UTC)
    cutoff = now - timedelta(days=settings.webhook_delivery_retention_days)
    result = db.execute(delete(WebhookDelivery).where(WebhookDelivery.created_at < cutoff))
    db.commit()
    return result.rowcount


def _validate_actions(actions: list[str]) -> list[str]:
    unknown = sorted(set(actions) - set(PERMITTED_ACTIONS))
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported actions: {', '.join(unknown)}",
        )
    return list(dict.fromkeys(actions))


def _validate_url(url: str) -> str:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise HTTPException(status_code=400, detail="Invalid webhook url") from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise HTTPException(status_code=400, detail="Invalid webhook url")
    return url


class Webhooks(ListResponseMixin):
    @staticmethod
    def create(db: Session, board_id: str, payload: WebhookCreate):
        board = get_or_404(db, Board, board_id)
        data = payload.model_dump()
        webhook = Webhook(
            account_id=board.account_id,
            board_id=board.id,
            name=data["name"],
            url=_validate_url(data["url"]),
            signing_secret=data.get("signing_secret") or secrets.token_urlsafe(32),
            subscribed_actions=_validate_actions(data["subscribed_actions"]),
            active=True,
        )
        db.add(webhook)
        db.commit()
        db.refresh(webhook)
        return webhook

    @staticmethod
    def get(db: Session, webhook_id: str):
        webhook = db.get(Webhook, coerce_uuid(webhook_id))
        if not webhook:
            raise HTTPException(status_code=404, detail="Webhook not found")
        return webhook

    @staticmethod
    def list(
        db: Session,
        board_id: str | None,
        active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(Webhook)
        if board_id:
            query = query.filter(Webhook.board_id == coerce_uuid(board_id))
        if active is not None:
            query = query.filter(Webhook.active.is_(active))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Webhook.created_at, "name": Webhook.name},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, webhook_id: str, payload: WebhookUpdate):
        webhook = Webhooks.get(db, webhook_id)
        data = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if "url" in data:
            data["url"] = _validate_url(data["url"])
        if "subscribed_actions" in data:
            data["subscribed_actions"] = _validate_actions(data["subscribed_actions"])
        for key, value in data.items():
            setattr(webhook, key, value)
        db.commit()
        db.refresh(webhook)
        return webhook

    @staticmethod
    def activate(db: Session, webhook_id: str):
        webhook = Webhooks.get(db, webhook_id)
        webhook.active = True
        _tracker_for(db, webhook).reset()
        db.commit()
        db.refresh(webhook)
        return webhook

    @staticmethod
    def delete(db: Session, webhook_id: str):
        webhook = Webhooks.get(db, webhook_id)
        db.delete(webhook)
        db.commit()


class WebhookDeliveries(ListResponseMixin):
    @staticmethod
    def list(
        db: Session,
        webhook_id: str,
        state: str | None,
        limit: int,
        offset: int,
    ):
        Webhooks.get(db, webhook_id)
        query = db.query(WebhookDelivery).filter(
            WebhookDelivery.webhook_id == coerce_uuid(webhook_id)
        )
        if state:
            query = query.filter(
                WebhookDelivery.state
                == validate_enum(state, WebhookDeliveryState, "state")
            )
        query = query.order_by(WebhookDelivery.created_at.desc())
        return apply_pagination(query, limit, offset).all()


webhooks = Webhooks()
webhook_deliveries = WebhookDeliveries()
