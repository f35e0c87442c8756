"""Durable retry queue for policy writes that failed on the CRUD path.

CRUD services never fail a user-facing operation because FreeRADIUS could
not be written. They call :func:`run_sync`, which logs the failure and stores
an outbox entry. :func:`replay_pending` later rebuilds the affected policy
from the current domain records, so replays are idempotent and always apply
the latest state rather than the state at failure time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from app.config import settings
from app.metrics import record_sync_failure
from app.models.catalog import NasDevice, Plan
from app.models.radius import RadiusSyncOutbox, RadiusSyncStatus
from app.models.subscriber import Subscriber
from app.schemas.radius import OutboxReplayResponse
from app.services import radius as radius_service
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)

OP_SUBSCRIBER_SYNC = "subscriber.sync"
OP_SUBSCRIBER_REMOVE = "subscriber.remove"
OP_PLAN_SYNC = "plan.sync"
OP_PLAN_REMOVE = "plan.remove"
OP_NAS_SYNC = "nas.sync"
OP_NAS_REMOVE = "nas.remove"


def record_failure(
    db: Session, operation: str, payload: dict, error: Exception | str
) -> RadiusSyncOutbox | None:
    entry = RadiusSyncOutbox(
        operation=operation,
        payload=payload,
        status=RadiusSyncStatus.pending,
        attempts=1,
        last_error=str(error)[:2000],
    )
    try:
        db.add(entry)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Could not record RADIUS outbox entry for %s %s", operation, payload)
        return None
    return entry


def run_sync(
    db: Session,
    operation: str,
    payload: dict,
    func: Callable[..., None],
    *args,
    **kwargs,
) -> bool:
    """Run a synchronization call without letting its failure escape."""
    try:
        func(db, *args, **kwargs)
    except Exception as exc:
        db.rollback()
        logger.warning("RADIUS %s failed for %s: %s", operation, payload, exc)
        record_sync_failure(operation)
        record_failure(db, operation, payload, exc)
        return False
    return True


def _replay_subscriber(db: Session, payload: dict) -> None:
    subscriber = db.get(Subscriber, coerce_uuid(payload["subscriber_id"]))
    if subscriber is None:
        if payload.get("tenant_slug") and payload.get("username"):
            radius_service.remove_subscriber_auth(
                db, payload["tenant_slug"], payload["username"]
            )
        return
    radius_service.sync_subscriber_policy(db, subscriber.tenant.slug, subscriber)


def _replay_subscriber_remove(db: Session, payload: dict) -> None:
    radius_service.remove_subscriber_auth(db, payload["tenant_slug"], payload["username"])


def _replay_plan(db: Session, payload: dict) -> None:
    plan = db.get(Plan, coerce_uuid(payload["plan_id"]))
    if plan is None:
        return
    radius_service.sync_plan_bandwidth(db, plan.tenant.slug, plan)


def _replay_plan_remove(db: Session, payload: dict) -> None:
    radius_service.remove_plan_bandwidth(db, payload["tenant_slug"], payload["plan_id"])


def _replay_nas(db: Session, payload: dict) -> None:
    device = db.get(NasDevice, coerce_uuid(payload["nas_device_id"]))
    if device is None:
        return
    radius_service.sync_nas_device(db, device)


def _replay_nas_remove(db: Session, payload: dict) -> None:
    radius_service.remove_nas_device(db, payload["nas_ip"])


_HANDLERS: dict[str, Callable[[Session, dict], None]] = {
    OP_SUBSCRIBER_SYNC: _replay_subscriber,
    OP_SUBSCRIBER_REMOVE: _replay_subscriber_remove,
    OP_PLAN_SYNC: _replay_plan,
    OP_PLAN_REMOVE: _replay_plan_remove,
    OP_NAS_SYNC: _replay_nas,
    OP_NAS_REMOVE: _replay_nas_remove,
}


def replay_pending(db: Session, limit: int | None = None) -> OutboxReplayResponse:
    limit = limit or settings.radius_outbox_batch_size
    entries = (
        db.query(RadiusSyncOutbox)
        .filter(RadiusSyncOutbox.status == RadiusSyncStatus.pending)
        .order_by(RadiusSyncOutbox.created_at)
        .limit(limit)
        .all()
    )
    succeeded = failed = abandoned = 0
    for entry in entries:
        handler = _HANDLERS.get(entry.operation)
        operation = entry.operation
        payload = dict(entry.payload or {})
        try:
            if handler is None:
                raise ValueError(f"Unknown outbox operation {operation}")
            handler(db, payload)
        except Exception as exc:
            db.rollback()
            failed += 1
            entry.attempts = (entry.attempts or 0) + 1
            entry.last_error = str(exc)[:2000]
            if entry.attempts >= settings.radius_outbox_max_attempts:
                entry.status = RadiusSyncStatus.failed
                abandoned += 1
                logger.error(
                    "Giving up on RADIUS %s for %s after %s attempts: %s",
                    operation,
                    payload,
                    entry.attempts,
                    exc,
                )
            else:
                logger.warning("RADIUS replay %s failed for %s: %s", operation, payload, exc)
            db.commit()
            continue
        entry.status = RadiusSyncStatus.succeeded
        entry.completed_at = datetime.now(UTC)
        db.commit()
        succeeded += 1
    if entries:
        logger.info(
            "RADIUS outbox replay: %s scanned, %s succeeded, %s failed",
            len(entries),
            succeeded,
            failed,
        )
    return OutboxReplayResponse(
        scanned=len(entries), succeeded=succeeded, failed=failed, abandoned=abandoned
    )
