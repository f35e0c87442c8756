"""Subscriber CRUD with RADIUS provisioning.

Domain changes are committed first. Provisioning runs afterwards through
:func:`app.services.radius_outbox.run_sync`, so a FreeRADIUS outage never
fails the request; the failed write is queued for replay instead.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.catalog import NasDevice, Plan
from app.models.subscriber import Subscriber, SubscriberStatus
from app.models.tenant import Tenant
from app.schemas.subscriber import (
    BulkImportError,
    BulkImportResult,
    SubscriberCreate,
    SubscriberUpdate,
)
from app.services import enforcement
from app.services import radius as radius_service
from app.services import radius_outbox
from app.services.common import apply_ordering, apply_pagination, coerce_uuid, get_or_404
from app.services.credential_crypto import encrypt_credential
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _sync_payload(tenant: Tenant, subscriber: Subscriber) -> dict:
    return {
        "subscriber_id": str(subscriber.id),
        "tenant_slug": tenant.slug,
        "username": subscriber.username,
    }


def _reconcile(db: Session, tenant: Tenant, subscriber: Subscriber) -> bool:
    return radius_outbox.run_sync(
        db,
        radius_outbox.OP_SUBSCRIBER_SYNC,
        _sync_payload(tenant, subscriber),
        radius_service.sync_subscriber_policy,
        tenant.slug,
        subscriber,
    )


def _disconnect(db: Session, subscriber: Subscriber) -> None:
    try:
        enforcement.disconnect_subscriber(db, subscriber)
    except Exception as exc:
        logger.warning("Could not disconnect sessions for %s: %s", subscriber.username, exc)


def _validate_references(
    db: Session, tenant: Tenant, plan_id, nas_device_id
) -> None:
    if plan_id is not None:
        plan = db.get(Plan, coerce_uuid(plan_id))
        if not plan or plan.tenant_id != tenant.id:
            raise HTTPException(status_code=404, detail="Plan not found")
    if nas_device_id is not None:
        device = db.get(NasDevice, coerce_uuid(nas_device_id))
        if not device or device.tenant_id != tenant.id:
            raise HTTPException(status_code=404, detail="NAS device not found")


def _username_taken(db: Session, tenant_id, username: str) -> bool:
    return (
        db.query(Subscriber.id)
        .filter(Subscriber.tenant_id == tenant_id)
        .filter(Subscriber.username == username)
        .first()
        is not None
    )


class Subscribers(ListResponseMixin):
    @staticmethod
    def get(db: Session, tenant_id: str, subscriber_id: str) -> Subscriber:
        subscriber = get_or_404(
            db, Subscriber, subscriber_id, detail="Subscriber not found", tenant_id=tenant_id
        )
        if subscriber.deleted_at is not None:
            raise HTTPException(status_code=404, detail="Subscriber not found")
        return subscriber

    @staticmethod
    def list(
        db: Session,
        tenant_id: str,
        status: SubscriberStatus | None,
        plan_id: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = (
            db.query(Subscriber)
            .filter(Subscriber.tenant_id == coerce_uuid(tenant_id))
            .filter(Subscriber.deleted_at.is_(None))
        )
        if status:
            query = query.filter(Subscriber.status == status)
        if plan_id:
            query = query.filter(Subscriber.plan_id == coerce_uuid(plan_id))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Subscriber.created_at,
                "username": Subscriber.username,
                "expiry_date": Subscriber.expiry_date,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def create(db: Session, tenant_id: str, payload: SubscriberCreate) -> Subscriber:
        tenant = get_or_404(db, Tenant, tenant_id, detail="Tenant not found")
        if _username_taken(db, tenant.id, payload.username):
            raise HTTPException(status_code=409, detail="Username already exists")
        _validate_references(db, tenant, payload.plan_id, payload.nas_device_id)
        data = payload.model_dump(exclude={"password"})
        subscriber = Subscriber(
            tenant_id=tenant.id,
            radius_password=encrypt_credential(payload.password),
            **data,
        )
        db.add(subscriber)
        db.commit()
        db.refresh(subscriber)
        _reconcile(db, tenant, subscriber)
        return subscriber

    @staticmethod
    def update(
        db: Session, tenant_id: str, subscriber_id: str, payload: SubscriberUpdate
    ) -> Subscriber:
        subscriber = Subscribers.get(db, tenant_id, subscriber_id)
        tenant = subscriber.tenant
        data = payload.model_dump(exclude_unset=True)
        _validate_references(db, tenant, data.get("plan_id"), data.get("nas_device_id"))
        password = data.pop("password", None)
        if password:
            subscriber.radius_password = encrypt_credential(password)
        previous_plan_id = subscriber.plan_id
        for key, value in data.items():
            setattr(subscriber, key, value)
        db.commit()
        db.refresh(subscriber)
        _reconcile(db, tenant, subscriber)
        if (
            subscriber.plan_id
            and subscriber.plan_id != previous_plan_id
            and radius_service.has_network_access(subscriber)
        ):
            try:
                enforcement.apply_plan_to_online_sessions(db, subscriber, subscriber.plan)
            except Exception as exc:
                logger.warning(
                    "Could not push new plan to sessions of %s: %s", subscriber.username, exc
                )
        return subscriber

    @staticmethod
    def update_status(
        db: Session, tenant_id: str, subscriber_id: str, status: SubscriberStatus
    ) -> Subscriber:
        subscriber = Subscribers.get(db, tenant_id, subscriber_id)
        tenant = subscriber.tenant
        subscriber.status = status
        db.commit()
        db.refresh(subscriber)
        if status in radius_service.ACCESS_ALLOWED_STATUSES:
            radius_outbox.run_sync(
                db,
                radius_outbox.OP_SUBSCRIBER_SYNC,
                _sync_payload(tenant, subscriber),
                radius_service.enable_subscriber_radius,
                tenant.slug,
                subscriber,
            )
            return subscriber
        if status == SubscriberStatus.disabled:
            radius_outbox.run_sync(
                db,
                radius_outbox.OP_SUBSCRIBER_SYNC,
                _sync_payload(tenant, subscriber),
                radius_service.remove_subscriber_auth,
                tenant.slug,
                subscriber.username,
            )
        else:
            radius_outbox.run_sync(
                db,
                radius_outbox.OP_SUBSCRIBER_SYNC,
                _sync_payload(tenant, subscriber),
                radius_service.disable_subscriber_radius,
                tenant.slug,
                subscriber.username,
            )
        _disconnect(db, subscriber)
        return subscriber

    @staticmethod
    def soft_delete(db: Session, tenant_id: str, subscriber_id: str) -> None:
        subscriber = Subscribers.get(db, tenant_id, subscriber_id)
        tenant = subscriber.tenant
        subscriber.status = SubscriberStatus.disabled
        subscriber.deleted_at = datetime.now(UTC)
        db.commit()
        radius_outbox.run_sync(
            db,
            radius_outbox.OP_SUBSCRIBER_REMOVE,
            {"tenant_slug": tenant.slug, "username": subscriber.username},
            radius_service.remove_subscriber_auth,
            tenant.slug,
            subscriber.username,
        )
        _disconnect(db, subscriber)

    @staticmethod
    def resync(db: Session, tenant_id: str, subscriber_id: str) -> Subscriber:
        """Rebuild the subscriber's policy rows; errors propagate to the operator."""
        subscriber = Subscribers.get(db, tenant_id, subscriber_id)
        radius_service.sync_subscriber_policy(db, subscriber.tenant.slug, subscriber)
        return subscriber

    @staticmethod
    def import_rows(
        db: Session,
        tenant_id: str,
        rows: list[tuple[int, SubscriberCreate]],
        result: BulkImportResult | None = None,
    ) -> BulkImportResult:
        result = result or BulkImportResult(created=0, failed=0)
        seen: set[str] = set()
        for row_number, payload in rows:
            username = payload.username
            if username in seen:
                result.failed += 1
                result.errors.append(
                    BulkImportError(
                        row=row_number,
                        username=username,
                        error="Duplicate username in import batch",
                    )
                )
                continue
            seen.add(username)
            try:
                Subscribers.create(db, tenant_id, payload)
            except HTTPException as exc:
                db.rollback()
                result.failed += 1
                result.errors.append(
                    BulkImportError(row=row_number, username=username, error=str(exc.detail))
                )
                continue
            except Exception as exc:
                db.rollback()
                logger.warning("Bulk import row %s (%s) failed: %s", row_number, username, exc)
                result.failed += 1
                result.errors.append(
                    BulkImportError(row=row_number, username=username, error=str(exc))
                )
                continue
            result.created += 1
        return result

    @staticmethod
    def bulk_create(
        db: Session, tenant_id: str, payloads: list[SubscriberCreate]
    ) -> BulkImportResult:
        get_or_404(db, Tenant, tenant_id, detail="Tenant not found")
        return Subscribers.import_rows(
            db, tenant_id, list(enumerate(payloads, start=1))
        )


subscribers = Subscribers()
