from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.lifecycle import (
    ExpiryReminderRunResponse,
    GracePeriodRunResponse,
    LifecycleRunRequest,
    NotificationDeliveryResponse,
    StaleSessionRunRequest,
    StaleSessionRunResponse,
)
from app.services import billing_lifecycle
from app.services import notification as notification_service

router = APIRouter(prefix="/lifecycle", tags=["lifecycle"])


@router.post("/expiry-reminders/run", response_model=ExpiryReminderRunResponse)
def run_expiry_reminders(
    payload: LifecycleRunRequest | None = None,
    db: Session = Depends(get_db),
):
    run_at = payload.run_at if payload else None
    return billing_lifecycle.run_expiry_reminders(db, run_at=run_at)


@router.post("/grace-period/run", response_model=GracePeriodRunResponse)
def run_grace_period_resolution(
    payload: LifecycleRunRequest | None = None,
    db: Session = Depends(get_db),
):
    run_at = payload.run_at if payload else None
    return billing_lifecycle.run_grace_period_resolution(db, run_at=run_at)


@router.post("/stale-sessions/run", response_model=StaleSessionRunResponse)
def run_stale_session_cleanup(
    payload: StaleSessionRunRequest | None = None,
    db: Session = Depends(get_db),
):
    payload = payload or StaleSessionRunRequest()
    return billing_lifecycle.run_stale_session_cleanup(
        db, nas_ip=payload.nas_ip, stale_minutes=payload.stale_minutes
    )


@router.post("/notifications/run", response_model=NotificationDeliveryResponse)
def run_notification_delivery(
    limit: int | None = Query(default=None, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return notification_service.deliver_queued_notifications(db, limit=limit)
