"""Celery tasks for event fanout.

Both tasks are queued by the event store once the transaction that recorded
the event has committed. They are independent of each other, may run in any
order and more than once; the services they call deduplicate on natural
keys so a retry never notifies or delivers twice.
"""

import logging
import time

from sqlalchemy.exc import SQLAlchemyError

from boardevents.celery_app import celery_app
from boardevents.config import settings
from boardevents.db import SessionLocal
from boardevents.metrics import observe_job
from boardevents.models.event import Event
from boardevents.services import notifier as notifier_service
from boardevents.services import webhook as webhook_service
from boardevents.services.common import coerce_uuid

logger = logging.getLogger(__name__)


def _log_failure(task, job_name: str, event_id: str) -> None:
    if task.request.retries >= task.max_retries:
        logger.error(
            f"{job_name} exhausted {task.max_retries} retries for event {event_id}"
        )
    else:
        logger.exception(f"{job_name} failed for event {event_id}")


@celery_app.task(
    name="boardevents.tasks.events.notify_recipients",
    bind=True,
    acks_late=True,
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=True,
    retry_backoff_max=settings.fanout_retry_backoff_max,
    max_retries=settings.fanout_max_retries,
)
def notify_recipients(self, event_id: str):
    """Create notifications for a committed event."""
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        event = session.get(Event, coerce_uuid(event_id))
        if not event:
            logger.warning(f"Event not found for notifications: {event_id}")
            return 0
        notifications = notifier_service.notify_recipients(session, event)
        return len(notifications)
    except Exception:
        status = "error"
        session.rollback()
        _log_failure(self, "notify_recipients", event_id)
        raise
    finally:
        session.close()
        observe_job("notify_recipients", status, time.monotonic() - start)


@celery_app.task(
    name="boardevents.tasks.events.dispatch_webhooks",
    bind=True,
    acks_late=True,
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=True,
    retry_backoff_max=settings.fanout_retry_backoff_max,
    max_retries=settings.fanout_max_retries,
)
def dispatch_webhooks(self, event_id: str):
    """Create and queue webhook deliveries for a committed event."""
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        event = session.get(Event, coerce_uuid(event_id))
        if not event:
            logger.warning(f"Event not found for webhook dispatch: {event_id}")
            return 0
        deliveries = webhook_service.dispatch_webhooks(session, event)
        return len(deliveries)
    except Exception:
        status = "error"
        session.rollback()
        _log_failure(self, "dispatch_webhooks", event_id)
        raise
    finally:
        session.close()
        observe_job("dispatch_webhooks", status, time.monotonic() - start)
