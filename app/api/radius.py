from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, tenant_scope
from app.schemas.radius import (
    DisconnectResponse,
    OutboxReplayResponse,
    RadiusSessionRead,
    SessionHistoryFilter,
    SessionHistoryPage,
    StaleSessionCleanupRequest,
    StaleSessionCleanupResponse,
)
from app.schemas.subscriber import SubscriberRead
from app.services import enforcement
from app.services import radius as radius_service
from app.services import radius_outbox
from app.services import subscriber as subscriber_service
from app.services.radius_naming import TENANT_SLUG_PATTERN

router = APIRouter(prefix="/radius", tags=["radius"])


def _history_filter(
    tenant_slug: str = Query(..., max_length=40, pattern=TENANT_SLUG_PATTERN),
    subscriber_username: str | None = None,
    nas_ip: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    only_active: bool = False,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
) -> SessionHistoryFilter:
    return SessionHistoryFilter(
        tenant_slug=tenant_slug,
        subscriber_username=subscriber_username,
        nas_ip=nas_ip,
        start_date=start_date,
        end_date=end_date,
        only_active=only_active,
        page=page,
        page_size=page_size,
    )


@router.get("/online", response_model=list[RadiusSessionRead])
def list_online_users(
    tenant_slug: str = Query(..., max_length=40, pattern=TENANT_SLUG_PATTERN),
    db: Session = Depends(get_db),
):
    return radius_service.get_online_users(db, tenant_slug)


@router.get("/sessions", response_model=SessionHistoryPage)
def list_session_history(
    params: SessionHistoryFilter = Depends(_history_filter),
    db: Session = Depends(get_db),
):
    return radius_service.get_session_history(db, params)


@router.get("/sessions/active", response_model=list[RadiusSessionRead])
def list_user_active_sessions(
    tenant_slug: str = Query(..., max_length=40, pattern=TENANT_SLUG_PATTERN),
    username: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    return radius_service.get_user_active_sessions(db, tenant_slug, username)


@router.post("/sessions/cleanup", response_model=StaleSessionCleanupResponse)
def cleanup_stale_sessions(
    payload: StaleSessionCleanupRequest,
    db: Session = Depends(get_db),
):
    closed = radius_service.cleanup_stale_sessions(
        db,
        nas_ip=payload.nas_ip,
        stale_minutes=payload.stale_minutes,
        tenant_slug=payload.tenant_slug,
    )
    return StaleSessionCleanupResponse(closed=closed)


@router.post("/subscribers/{subscriber_id}/disconnect", response_model=DisconnectResponse)
def disconnect_subscriber(
    subscriber_id: str,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    subscriber = subscriber_service.subscribers.get(db, tenant_id, subscriber_id)
    result = enforcement.disconnect_subscriber(db, subscriber)
    return DisconnectResponse(attempted=result.attempted, disconnected=result.disconnected)


@router.post("/subscribers/{subscriber_id}/resync", response_model=SubscriberRead)
def resync_subscriber(
    subscriber_id: str,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return subscriber_service.subscribers.resync(db, tenant_id, subscriber_id)


@router.post("/outbox/replay", response_model=OutboxReplayResponse)
def replay_outbox(
    limit: int | None = Query(default=None, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return radius_outbox.replay_pending(db, limit=limit)
