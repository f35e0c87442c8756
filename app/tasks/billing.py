import time

from app.celery_app import celery_app
from app.db import SessionLocal
from app.logging import get_logger
from app.metrics import observe_job
from app.services import billing_lifecycle

logger = get_logger(__name__)


@celery_app.task(name="app.tasks.billing.run_expiry_reminders")
def run_expiry_reminders():
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        result = billing_lifecycle.run_expiry_reminders(session)
        return result.model_dump(mode="json")
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("Expiry reminder run failed.")
        raise
    finally:
        session.close()
        observe_job("expiry_reminders", status, time.monotonic() - start)


@celery_app.task(name="app.tasks.billing.run_grace_period_resolution")
def run_grace_period_resolution():
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        result = billing_lifecycle.run_grace_period_resolution(session)
        if result.failures:
            status = "partial"
        return result.model_dump(mode="json")
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("Grace period resolution failed.")
        raise
    finally:
        session.close()
        observe_job("grace_period_resolution", status, time.monotonic() - start)
