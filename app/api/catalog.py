from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, tenant_scope
from app.schemas.catalog import (
    NasDeviceCreate,
    NasDeviceRead,
    NasDeviceUpdate,
    PlanCreate,
    PlanRead,
    PlanUpdate,
)
from app.schemas.common import ListResponse
from app.services import catalog as catalog_service

router = APIRouter()


@router.post(
    "/plans",
    response_model=PlanRead,
    status_code=status.HTTP_201_CREATED,
    tags=["plans"],
)
def create_plan(
    payload: PlanCreate,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return catalog_service.plans.create(db, tenant_id, payload)


@router.get("/plans", response_model=ListResponse[PlanRead], tags=["plans"])
def list_plans(
    tenant_id: str = Depends(tenant_scope),
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return catalog_service.plans.list_response(
        db, tenant_id, order_by, order_dir, limit=limit, offset=offset
    )


@router.get("/plans/{plan_id}", response_model=PlanRead, tags=["plans"])
def get_plan(
    plan_id: str,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return catalog_service.plans.get(db, tenant_id, plan_id)


@router.patch("/plans/{plan_id}", response_model=PlanRead, tags=["plans"])
def update_plan(
    plan_id: str,
    payload: PlanUpdate,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return catalog_service.plans.update(db, tenant_id, plan_id, payload)


@router.delete(
    "/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["plans"]
)
def delete_plan(
    plan_id: str,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    catalog_service.plans.delete(db, tenant_id, plan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/nas-devices",
    response_model=NasDeviceRead,
    status_code=status.HTTP_201_CREATED,
    tags=["nas-devices"],
)
def create_nas_device(
    payload: NasDeviceCreate,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return catalog_service.nas_devices.create(db, tenant_id, payload)


@router.get(
    "/nas-devices", response_model=ListResponse[NasDeviceRead], tags=["nas-devices"]
)
def list_nas_devices(
    tenant_id: str = Depends(tenant_scope),
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return catalog_service.nas_devices.list_response(
        db, tenant_id, order_by, order_dir, limit=limit, offset=offset
    )


@router.get(
    "/nas-devices/{device_id}", response_model=NasDeviceRead, tags=["nas-devices"]
)
def get_nas_device(
    device_id: str,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return catalog_service.nas_devices.get(db, tenant_id, device_id)


@router.patch(
    "/nas-devices/{device_id}", response_model=NasDeviceRead, tags=["nas-devices"]
)
def update_nas_device(
    device_id: str,
    payload: NasDeviceUpdate,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    return catalog_service.nas_devices.update(db, tenant_id, device_id, payload)


@router.delete(
    "/nas-devices/{device_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["nas-devices"],
)
def delete_nas_device(
    device_id: str,
    tenant_id: str = Depends(tenant_scope),
    db: Session = Depends(get_db),
):
    catalog_service.nas_devices.delete(db, tenant_id, device_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
