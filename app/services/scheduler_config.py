import logging
import os
from datetime import timedelta

from celery.schedules import crontab

logger = logging.getLogger(__name__)


def _env_value(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _env_bool(name: str) -> bool | None:
    raw = _env_value(name)
    if raw is None:
        return None
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str) -> int | None:
    raw = _env_value(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer value for %s: %r", name, raw)
        return None


def _effective_bool(env_key: str, default: bool) -> bool:
    value = _env_bool(env_key)
    return default if value is None else value


def _effective_int(env_key: str, default: int) -> int:
    value = _env_int(env_key)
    return default if value is None else value


def get_celery_config() -> dict:
    broker = (
        _env_value("CELERY_BROKER_URL")
        or _env_value("REDIS_URL")
        or "redis://localhost:6379/0"
    )
    backend = (
        _env_value("CELERY_RESULT_BACKEND")
        or _env_value("REDIS_URL")
        or "redis://localhost:6379/1"
    )
    return {
        "broker_url": broker,
        "result_backend": backend,
        "timezone": _env_value("CELERY_TIMEZONE") or "UTC",
        "enable_utc": True,
        "beat_max_loop_interval": _effective_int("CELERY_BEAT_MAX_LOOP_INTERVAL", 5),
        "task_acks_late": True,
    }


def build_beat_schedule() -> dict:
    """Periodic lifecycle jobs, each switchable with an ``*_ENABLED`` variable."""
    schedule: dict[str, dict] = {}

    if _effective_bool("EXPIRY_REMINDERS_ENABLED", True):
        interval_hours = _effective_int("EXPIRY_REMINDERS_INTERVAL_HOURS", 6)
        schedule["expiry_reminders"] = {
            "task": "app.tasks.billing.run_expiry_reminders",
            "schedule": timedelta(hours=max(interval_hours, 1)),
        }

    if _effective_bool("GRACE_PERIOD_ENABLED", True):
        hour = _effective_int("GRACE_PERIOD_HOUR", 2)
        minute = _effective_int("GRACE_PERIOD_MINUTE", 0)
        schedule["grace_period_resolution"] = {
            "task": "app.tasks.billing.run_grace_period_resolution",
            "schedule": crontab(hour=hour % 24, minute=minute % 60),
        }

    if _effective_bool("STALE_SESSION_CLEANUP_ENABLED", True):
        interval_seconds = _effective_int("STALE_SESSION_CLEANUP_INTERVAL_SECONDS", 300)
        schedule["stale_session_cleanup"] = {
            "task": "app.tasks.radius.cleanup_stale_sessions",
            "schedule": timedelta(seconds=max(interval_seconds, 60)),
        }

    if _effective_bool("RADIUS_OUTBOX_REPLAY_ENABLED", True):
        interval_seconds = _effective_int("RADIUS_OUTBOX_REPLAY_INTERVAL_SECONDS", 120)
        schedule["radius_outbox_replay"] = {
            "task": "app.tasks.radius.replay_radius_outbox",
            "schedule": timedelta(seconds=max(interval_seconds, 30)),
        }

    if _effective_bool("NOTIFICATION_QUEUE_ENABLED", True):
        interval_seconds = _effective_int("NOTIFICATION_QUEUE_INTERVAL_SECONDS", 60)
        schedule["notification_queue"] = {
            "task": "app.tasks.notifications.deliver_notification_queue",
            "schedule": timedelta(seconds=max(interval_seconds, 10)),
        }

    return schedule
