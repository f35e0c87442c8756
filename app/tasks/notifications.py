import time

from app.celery_app import celery_app
from app.db import SessionLocal
from app.logging import get_logger
from app.metrics import observe_job
from app.services import notification as notification_service

logger = get_logger(__name__)


@celery_app.task(name="app.tasks.notifications.deliver_notification_queue")
def deliver_notification_queue(batch_size: int | None = None):
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        result = notification_service.deliver_queued_notifications(session, limit=batch_size)
        if result.delivered:
            logger.info("Delivered %s of %s queued notifications", result.delivered, result.scanned)
        return result.model_dump(mode="json")
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("Notification delivery failed.")
        raise
    finally:
        session.close()
        observe_job("notification_queue", status, time.monotonic() - start)
