"""Scheduled subscriber lifecycle: expiry reminders, grace-period resolution
and stale accounting cleanup.

Each job walks every tenant that is not suspended. A failure while handling
one tenant or one subscriber is logged and rolled back without stopping the
rest of the batch.
"""

from __future__ import annotations

import logging
import uuid
from calendar import monthrange
from datetime import UTC, datetime, time, timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.metrics import record_lifecycle
from app.models.catalog import Plan, ValidityUnit
from app.models.notification import NotificationType, SubscriberNotification
from app.models.subscriber import Subscriber, SubscriberStatus
from app.models.tenant import Tenant, TenantStatus
from app.schemas.lifecycle import (
    ExpiryReminderRunResponse,
    GracePeriodRunResponse,
    StaleSessionRunResponse,
)
from app.services import enforcement
from app.services import radius as radius_service
from app.services.common import round_money
from app.services.notification import queue_subscriber_notification

logger = logging.getLogger(__name__)

RENEWED = "renewed"
EXPIRED = "expired"


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _add_months(value: datetime, months: int) -> datetime:
    total = value.month - 1 + months
    year = value.year + total // 12
    month = total % 12 + 1
    day = min(value.day, monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_renewal_expiry(now: datetime, plan: Plan) -> datetime:
    amount = plan.validity_amount or 0
    if plan.validity_unit == ValidityUnit.hours:
        return now + timedelta(hours=amount)
    if plan.validity_unit == ValidityUnit.weeks:
        return now + timedelta(weeks=amount)
    if plan.validity_unit == ValidityUnit.months:
        return _add_months(now, amount)
    return now + timedelta(days=amount)


def grace_period_days(tenant: Tenant) -> int:
    if tenant.grace_period_days is None:
        return settings.default_grace_period_days
    return max(0, tenant.grace_period_days)


def _active_tenants(db: Session) -> list[Tenant]:
    return (
        db.query(Tenant)
        .filter(Tenant.status != TenantStatus.suspended)
        .order_by(Tenant.slug)
        .all()
    )


def _day_window(day_start: datetime) -> tuple[datetime, datetime]:
    start = datetime.combine(day_start.date(), time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


def _already_reminded(db: Session, subscriber_id: uuid.UUID, since: datetime) -> bool:
    return (
        db.query(SubscriberNotification.id)
        .filter(SubscriberNotification.subscriber_id == subscriber_id)
        .filter(SubscriberNotification.notification_type == NotificationType.expiry_reminder)
        .filter(SubscriberNotification.created_at >= since)
        .first()
        is not None
    )


def _queue_tenant_reminders(db: Session, tenant: Tenant, run_at: datetime) -> tuple[int, int]:
    """Queue due reminders for one tenant; returns ``(queued, failures)``.

    Each subscriber's reminder is committed on its own.
    """
    slug = tenant.slug
    today_start, _ = _day_window(run_at)
    queued = failures = 0
    for offset in settings.reminder_offsets():
        window_start, window_end = _day_window(run_at + timedelta(days=offset))
        subscriber_ids = [
            row[0]
            for row in (
                db.query(Subscriber.id)
                .filter(Subscriber.tenant_id == tenant.id)
                .filter(Subscriber.status == SubscriberStatus.active)
                .filter(Subscriber.deleted_at.is_(None))
                .filter(Subscriber.expiry_date >= window_start)
                .filter(Subscriber.expiry_date < window_end)
                .all()
            )
        ]
        for subscriber_id in subscriber_ids:
            try:
                # The scan repeats during the day; one reminder per subscriber per day.
                if _already_reminded(db, subscriber_id, today_start):
                    continue
                subscriber = db.get(Subscriber, subscriber_id)
                queue_subscriber_notification(
                    db,
                    subscriber,
                    NotificationType.expiry_reminder,
                    {
                        "days_until_expiry": offset,
                        "expiry_date": _as_utc(subscriber.expiry_date).isoformat(),
                        "plan_name": subscriber.plan.name if subscriber.plan else None,
                    },
                )
                db.commit()
            except Exception:
                db.rollback()
                failures += 1
                logger.exception(
                    "Expiry reminder failed for subscriber %s (tenant %s)", subscriber_id, slug
                )
                continue
            queued += 1
    return queued, failures


def run_expiry_reminders(db: Session, run_at: datetime | None = None) -> ExpiryReminderRunResponse:
    run_at = _as_utc(run_at) or datetime.now(UTC)
    tenants_scanned = reminders_queued = failures = 0
    for tenant in _active_tenants(db):
        tenants_scanned += 1
        slug = tenant.slug
        try:
            tenant_queued, tenant_failures = _queue_tenant_reminders(db, tenant, run_at)
        except Exception:
            db.rollback()
            failures += 1
            logger.exception("Expiry reminder scan failed for tenant %s", slug)
            continue
        reminders_queued += tenant_queued
        failures += tenant_failures
    record_lifecycle("reminded", reminders_queued)
    logger.info(
        "Expiry reminders: %s tenants, %s queued, %s failures",
        tenants_scanned,
        reminders_queued,
        failures,
    )
    return ExpiryReminderRunResponse(
        run_at=run_at,
        tenants_scanned=tenants_scanned,
        reminders_queued=reminders_queued,
        failures=failures,
    )


def _renew(db: Session, tenant_slug: str, subscriber: Subscriber, plan: Plan, run_at: datetime):
    price = round_money(plan.price or 0)
    new_expiry = compute_renewal_expiry(run_at, plan)
    subscriber.balance = round_money(round_money(subscriber.balance or 0) - price)
    subscriber.expiry_date = new_expiry
    subscriber.last_renewal_date = run_at
    queue_subscriber_notification(
        db,
        subscriber,
        NotificationType.renewal_confirmation,
        {
            "amount": str(price),
            "balance": str(subscriber.balance),
            "new_expiry": new_expiry.isoformat(),
            "plan_name": plan.name,
        },
    )
    # Commits the subscriber update and the notification with the Expiration row.
    radius_service.set_expiration(db, tenant_slug, subscriber.username, new_expiry)


def _expire(db: Session, tenant_slug: str, subscriber: Subscriber) -> int:
    subscriber.status = SubscriberStatus.expired
    queue_subscriber_notification(
        db,
        subscriber,
        NotificationType.expired_notice,
        {
            "expiry_date": _as_utc(subscriber.expiry_date).isoformat()
            if subscriber.expiry_date
            else None,
            "plan_name": subscriber.plan.name if subscriber.plan else None,
        },
    )
    # Reject before disconnecting so the NAS cannot re-authenticate the session.
    radius_service.disable_subscriber_radius(db, tenant_slug, subscriber.username)
    result = enforcement.disconnect_subscriber(db, subscriber)
    return result.disconnected


def resolve_subscriber(
    db: Session, tenant_slug: str, subscriber: Subscriber, run_at: datetime
) -> tuple[str, int]:
    """Auto-renew ``subscriber`` when its balance covers the plan, else expire it."""
    plan = subscriber.plan
    if subscriber.auto_renewal and plan is not None:
        balance = round_money(subscriber.balance or 0)
        if balance >= round_money(plan.price or 0):
            _renew(db, tenant_slug, subscriber, plan, run_at)
            return RENEWED, 0
    return EXPIRED, _expire(db, tenant_slug, subscriber)


def run_grace_period_resolution(
    db: Session, run_at: datetime | None = None
) -> GracePeriodRunResponse:
    run_at = _as_utc(run_at) or datetime.now(UTC)
    tenants_scanned = scanned = renewed = expired = disconnected = failures = 0
    for tenant in _active_tenants(db):
        tenants_scanned += 1
        slug = tenant.slug
        cutoff = run_at - timedelta(days=grace_period_days(tenant))
        try:
            subscriber_ids = [
                row[0]
                for row in (
                    db.query(Subscriber.id)
                    .filter(Subscriber.tenant_id == tenant.id)
                    .filter(Subscriber.status == SubscriberStatus.active)
                    .filter(Subscriber.deleted_at.is_(None))
                    .filter(Subscriber.expiry_date.isnot(None))
                    .filter(Subscriber.expiry_date <= cutoff)
                    .all()
                )
            ]
        except Exception:
            db.rollback()
            failures += 1
            logger.exception("Grace period scan failed for tenant %s", slug)
            continue
        for subscriber_id in subscriber_ids:
            scanned += 1
            try:
                subscriber = db.get(Subscriber, subscriber_id)
                if subscriber is None or subscriber.status != SubscriberStatus.active:
                    continue
                outcome, count = resolve_subscriber(db, slug, subscriber, run_at)
            except Exception:
                db.rollback()
                failures += 1
                logger.exception(
                    "Grace period resolution failed for subscriber %s (tenant %s)",
                    subscriber_id,
                    slug,
                )
                continue
            if outcome == RENEWED:
                renewed += 1
            else:
                expired += 1
                disconnected += count
    record_lifecycle(RENEWED, renewed)
    record_lifecycle(EXPIRED, expired)
    logger.info(
        "Grace period resolution: %s scanned, %s renewed, %s expired, %s failures",
        scanned,
        renewed,
        expired,
        failures,
    )
    return GracePeriodRunResponse(
        run_at=run_at,
        tenants_scanned=tenants_scanned,
        subscribers_scanned=scanned,
        subscribers_renewed=renewed,
        subscribers_expired=expired,
        sessions_disconnected=disconnected,
        failures=failures,
    )


def run_stale_session_cleanup(
    db: Session,
    nas_ip: str | None = None,
    stale_minutes: int | None = None,
    run_at: datetime | None = None,
) -> StaleSessionRunResponse:
    run_at = _as_utc(run_at) or datetime.now(UTC)
    closed = radius_service.cleanup_stale_sessions(
        db, nas_ip=nas_ip, stale_minutes=stale_minutes, now=run_at
    )
    return StaleSessionRunResponse(run_at=run_at, sessions_closed=closed)
