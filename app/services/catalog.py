from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.catalog import NasDevice, Plan
from app.models.subscriber import Subscriber
from app.models.tenant import Tenant
from app.schemas.catalog import NasDeviceCreate, NasDeviceUpdate, PlanCreate, PlanUpdate
from app.services import radius as radius_service
from app.services import radius_outbox
from app.services.common import apply_ordering, apply_pagination, coerce_uuid, get_or_404
from app.services.credential_crypto import encrypt_credential
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _sync_plan(db: Session, tenant: Tenant, plan: Plan) -> bool:
    return radius_outbox.run_sync(
        db,
        radius_outbox.OP_PLAN_SYNC,
        {"plan_id": str(plan.id), "tenant_slug": tenant.slug},
        radius_service.sync_plan_bandwidth,
        tenant.slug,
        plan,
    )


def _sync_nas(db: Session, device: NasDevice) -> bool:
    return radius_outbox.run_sync(
        db,
        radius_outbox.OP_NAS_SYNC,
        {"nas_device_id": str(device.id), "nas_ip": device.nas_ip},
        radius_service.sync_nas_device,
        device,
    )


def _remove_nas(db: Session, nas_ip: str) -> bool:
    return radius_outbox.run_sync(
        db,
        radius_outbox.OP_NAS_REMOVE,
        {"nas_ip": nas_ip},
        radius_service.remove_nas_device,
        nas_ip,
    )


def _subscriber_count(db: Session, column, value) -> int:
    return (
        db.query(Subscriber)
        .filter(column == value)
        .filter(Subscriber.deleted_at.is_(None))
        .count()
    )


def _detach_deleted_subscribers(db: Session, column, value) -> None:
    db.query(Subscriber).filter(column == value).filter(
        Subscriber.deleted_at.isnot(None)
    ).update({column: None}, synchronize_session=False)


class Plans(ListResponseMixin):
    @staticmethod
    def get(db: Session, tenant_id: str, plan_id: str) -> Plan:
        return get_or_404(db, Plan, plan_id, detail="Plan not found", tenant_id=tenant_id)

    @staticmethod
    def list(
        db: Session,
        tenant_id: str,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(Plan).filter(Plan.tenant_id == coerce_uuid(tenant_id))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Plan.created_at, "name": Plan.name, "price": Plan.price},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def create(db: Session, tenant_id: str, payload: PlanCreate) -> Plan:
        tenant = get_or_404(db, Tenant, tenant_id, detail="Tenant not found")
        plan = Plan(tenant_id=tenant.id, **payload.model_dump())
        db.add(plan)
        db.commit()
        db.refresh(plan)
        _sync_plan(db, tenant, plan)
        return plan

    @staticmethod
    def update(db: Session, tenant_id: str, plan_id: str, payload: PlanUpdate) -> Plan:
        plan = Plans.get(db, tenant_id, plan_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(plan, key, value)
        db.commit()
        db.refresh(plan)
        _sync_plan(db, plan.tenant, plan)
        return plan

    @staticmethod
    def delete(db: Session, tenant_id: str, plan_id: str) -> None:
        plan = Plans.get(db, tenant_id, plan_id)
        in_use = _subscriber_count(db, Subscriber.plan_id, plan.id)
        if in_use:
            raise HTTPException(
                status_code=409,
                detail=f"Plan is assigned to {in_use} subscriber(s)",
            )
        tenant_slug = plan.tenant.slug
        removed_id = str(plan.id)
        _detach_deleted_subscribers(db, Subscriber.plan_id, plan.id)
        db.delete(plan)
        db.commit()
        radius_outbox.run_sync(
            db,
            radius_outbox.OP_PLAN_REMOVE,
            {"plan_id": removed_id, "tenant_slug": tenant_slug},
            radius_service.remove_plan_bandwidth,
            tenant_slug,
            removed_id,
        )


class NasDevices(ListResponseMixin):
    @staticmethod
    def get(db: Session, tenant_id: str, device_id: str) -> NasDevice:
        return get_or_404(
            db, NasDevice, device_id, detail="NAS device not found", tenant_id=tenant_id
        )

    @staticmethod
    def list(
        db: Session,
        tenant_id: str,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(NasDevice).filter(NasDevice.tenant_id == coerce_uuid(tenant_id))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": NasDevice.created_at, "name": NasDevice.name},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def _ensure_ip_available(db: Session, nas_ip: str, exclude_id=None) -> None:
        query = db.query(NasDevice.id).filter(NasDevice.nas_ip == nas_ip)
        if exclude_id is not None:
            query = query.filter(NasDevice.id != exclude_id)
        if query.first() is not None:
            raise HTTPException(
                status_code=409, detail=f"A NAS device with IP {nas_ip} already exists"
            )

    @staticmethod
    def create(db: Session, tenant_id: str, payload: NasDeviceCreate) -> NasDevice:
        tenant = get_or_404(db, Tenant, tenant_id, detail="Tenant not found")
        NasDevices._ensure_ip_available(db, payload.nas_ip)
        data = payload.model_dump(exclude={"secret"})
        device = NasDevice(
            tenant_id=tenant.id, secret=encrypt_credential(payload.secret), **data
        )
        db.add(device)
        db.commit()
        db.refresh(device)
        _sync_nas(db, device)
        return device

    @staticmethod
    def update(
        db: Session, tenant_id: str, device_id: str, payload: NasDeviceUpdate
    ) -> NasDevice:
        device = NasDevices.get(db, tenant_id, device_id)
        data = payload.model_dump(exclude_unset=True)
        previous_ip = device.nas_ip
        if data.get("nas_ip") and data["nas_ip"] != previous_ip:
            NasDevices._ensure_ip_available(db, data["nas_ip"], exclude_id=device.id)
        secret = data.pop("secret", None)
        if secret:
            device.secret = encrypt_credential(secret)
        for key, value in data.items():
            setattr(device, key, value)
        db.commit()
        db.refresh(device)
        if device.nas_ip != previous_ip:
            _remove_nas(db, previous_ip)
        _sync_nas(db, device)
        return device

    @staticmethod
    def delete(db: Session, tenant_id: str, device_id: str) -> None:
        device = NasDevices.get(db, tenant_id, device_id)
        in_use = _subscriber_count(db, Subscriber.nas_device_id, device.id)
        if in_use:
            raise HTTPException(
                status_code=409,
                detail=f"NAS device is assigned to {in_use} subscriber(s)",
            )
        nas_ip = device.nas_ip
        _detach_deleted_subscribers(db, Subscriber.nas_device_id, device.id)
        db.delete(device)
        db.commit()
        _remove_nas(db, nas_ip)


plans = Plans()
nas_devices = NasDevices()
