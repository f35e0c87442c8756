from app.tasks.billing import run_expiry_reminders, run_grace_period_resolution
from app.tasks.radius import cleanup_stale_sessions, replay_radius_outbox
from app.tasks.notifications import deliver_notification_queue

__all__ = [
    "run_expiry_reminders",
    "run_grace_period_resolution",
    "cleanup_stale_sessions",
    "replay_radius_outbox",
    "deliver_notification_queue",
]
