import time

from app.celery_app import celery_app
from app.db import SessionLocal
from app.logging import get_logger
from app.metrics import observe_job
from app.services import billing_lifecycle, radius_outbox

logger = get_logger(__name__)


@celery_app.task(name="app.tasks.radius.cleanup_stale_sessions")
def cleanup_stale_sessions(nas_ip: str | None = None, stale_minutes: int | None = None):
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        result = billing_lifecycle.run_stale_session_cleanup(
            session, nas_ip=nas_ip, stale_minutes=stale_minutes
        )
        return result.model_dump(mode="json")
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("Stale session cleanup failed.")
        raise
    finally:
        session.close()
        observe_job("stale_session_cleanup", status, time.monotonic() - start)


@celery_app.task(name="app.tasks.radius.replay_radius_outbox")
def replay_radius_outbox():
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        result = radius_outbox.replay_pending(session)
        return result.model_dump(mode="json")
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("RADIUS outbox replay failed.")
        raise
    finally:
        session.close()
        observe_job("radius_outbox_replay", status, time.monotonic() - start)
