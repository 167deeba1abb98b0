from prometheus_client import Counter, Histogram

JOB_DURATION = Histogram(
    "job_duration_seconds",
    "Background job duration",
    ["task", "status"],
)

EVENTS_TRACKED = Counter(
    "board_events_tracked_total",
    "Events committed by the event store",
    ["action"],
)
NOTIFICATIONS_CREATED = Counter(
    "board_notifications_created_total",
    "Notifications created by event fanout",
)
WEBHOOK_DELIVERIES = Counter(
    "board_webhook_deliveries_total",
    "Webhook delivery attempts by final state",
    ["state"],
)
WEBHOOKS_DEACTIVATED = Counter(
    "board_webhooks_deactivated_total",
    "Webhooks deactivated for delinquency",
)


def observe_job(task_name: str, status: str, duration: float) -> None:
    JOB_DURATION.labels(task=task_name, status=status).observe(duration)
