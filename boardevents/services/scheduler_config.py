import logging
import os
from datetime import timedelta

from boardevents.config import settings

logger = logging.getLogger(__name__)


def _env_value(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_value(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = _env_value(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {raw!r}")
        return default


def get_celery_config() -> dict:
    config: dict[str, object] = {
        "broker_url": settings.celery_broker_url,
        "result_backend": settings.celery_result_backend,
        "timezone": settings.celery_timezone,
        "task_acks_late": _env_bool("CELERY_TASK_ACKS_LATE", True),
        "task_reject_on_worker_lost": _env_bool("CELERY_TASK_REJECT_ON_WORKER_LOST", True),
    }
    config["worker_prefetch_multiplier"] = _env_int("CELERY_WORKER_PREFETCH_MULTIPLIER", 1)
    return config


def build_beat_schedule() -> dict:
    schedule: dict[str, dict] = {}
    if _env_bool("WEBHOOK_DELIVERY_CLEANUP_ENABLED", True):
        interval_hours = _env_int("WEBHOOK_DELIVERY_CLEANUP_INTERVAL_HOURS", 24)
        schedule["webhook_delivery_cleanup"] = {
            "task": "boardevents.tasks.webhooks.cleanup_stale_deliveries",
            "schedule": timedelta(hours=max(interval_hours, 1)),
        }
    return schedule
