from boardevents.tasks.events import dispatch_webhooks, notify_recipients
from boardevents.tasks.webhooks import cleanup_stale_deliveries, deliver_webhook

__all__ = [
    "cleanup_stale_deliveries",
    "deliver_webhook",
    "dispatch_webhooks",
    "notify_recipients",
]
