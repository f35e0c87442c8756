from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, tenant_scope
from app.models.subscriber import SubscriberStatus
from app.schemas.common import ListResponse
from app.schemas.subscriber import (
    BulkImportResult,
    SubscriberCreate,
    SubscriberRead,
    SubscriberStatusUpdate,
    SubscriberUpdate,
)
from app.services import subscriber as subscriber_service
from app.services import subscriber_import as subscriber_import_service

router = APIRouter(prefix="/subscribers", tags=["subscribers"])


@router.post("", response_model=SubscriberRead, status_code=status.HTTP_201_CREATED)
def create_subscriber(
    payload: SubscriberCreate,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return subscriber_service.subscribers.create(db, tenant_id, payload)


@router.get("", response_model=ListResponse[SubscriberRead])
def list_subscribers(
    tenant_id: str = Depends(tenant_scope),
    status: SubscriberStatus | None = None,
    plan_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return subscriber_service.subscribers.list_response(
        db, tenant_id, status, plan_id, order_by, order_dir, limit=limit, offset=offset
    )


@router.post("/import", response_model=BulkImportResult)
def import_subscribers(
    file: UploadFile = File(...),
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return subscriber_import_service.import_subscribers_upload(db, tenant_id, file)


@router.post("/bulk", response_model=BulkImportResult)
def bulk_create_subscribers(
    payloads: list[SubscriberCreate],
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return subscriber_service.subscribers.bulk_create(db, tenant_id, payloads)


@router.get("/{subscriber_id}", response_model=SubscriberRead)
def get_subscriber(
    subscriber_id: str,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return subscriber_service.subscribers.get(db, tenant_id, subscriber_id)


@router.patch("/{subscriber_id}", response_model=SubscriberRead)
def update_subscriber(
    subscriber_id: str,
    payload: SubscriberUpdate,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return subscriber_service.subscribers.update(db, tenant_id, subscriber_id, payload)


@router.post("/{subscriber_id}/status", response_model=SubscriberRead)
def update_subscriber_status(
    subscriber_id: str,
    payload: SubscriberStatusUpdate,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return subscriber_service.subscribers.update_status(
        db, tenant_id, subscriber_id, payload.status
    )


@router.delete("/{subscriber_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subscriber(
    subscriber_id: str,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    subscriber_service.subscribers.soft_delete(db, tenant_id, subscriber_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
