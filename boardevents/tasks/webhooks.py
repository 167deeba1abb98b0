"""Celery tasks for webhook delivery."""

import logging
import time

import httpx

from boardevents.celery_app import celery_app
from boardevents.config import settings
from boardevents.db import SessionLocal
from boardevents.metrics import observe_job
from boardevents.models.webhook import WebhookDelivery
from boardevents.services import webhook as webhook_service
from boardevents.services.common import coerce_uuid

logger = logging.getLogger(__name__)


@celery_app.task(name="boardevents.tasks.webhooks.deliver_webhook", acks_late=True)
def deliver_webhook(delivery_id: str):
    """POST a pending delivery to its webhook.

    Failures are not retried here; they count towards the webhook's
    delinquency instead.
    """
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        delivery = session.get(WebhookDelivery, coerce_uuid(delivery_id))
        if not delivery:
            logger.error(f"WebhookDelivery not found: {delivery_id}")
            return None
        with httpx.Client(timeout=settings.webhook_request_timeout) as client:
            delivery = webhook_service.deliver(session, delivery, client)
        return delivery.state.value
    except Exception:
        status = "error"
        session.rollback()
        logger.exception(f"Unexpected error delivering webhook {delivery_id}")
        raise
    finally:
        session.close()
        observe_job("deliver_webhook", status, time.monotonic() - start)


@celery_app.task(name="boardevents.tasks.webhooks.cleanup_stale_deliveries")
def cleanup_stale_deliveries():
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        deleted = webhook_service.cleanup_stale_deliveries(session)
        logger.info(f"Deleted {deleted} stale webhook deliveries")
        return {"deleted": deleted}
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("Webhook delivery cleanup failed.")
        raise
    finally:
        session.close()
        observe_job("webhook_delivery_cleanup", status, time.monotonic() - start)
