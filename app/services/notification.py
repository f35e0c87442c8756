"""Subscriber notification jobs.

Lifecycle code queues rows in the same transaction as the state change that
triggered them. Delivery hands each job to the configured webhook, which owns
the SMS/e-mail/WhatsApp channel adapters.
"""

from __future__ import annotations

import concurrent.futures
import logging
import uuid
from datetime import UTC, datetime

import httpx
from sqlalchemy.orm import Session

from app.config import settings
from app.models.notification import NotificationStatus, NotificationType, SubscriberNotification
from app.models.subscriber import Subscriber
from app.schemas.lifecycle import NotificationDeliveryResponse

logger = logging.getLogger(__name__)


def queue_subscriber_notification(
    db: Session,
    subscriber: Subscriber,
    notification_type: NotificationType,
    variables: dict | None = None,
) -> SubscriberNotification:
    """Stage a notification job; the caller commits."""
    notification = SubscriberNotification(
        tenant_id=subscriber.tenant_id,
        subscriber_id=subscriber.id,
        notification_type=notification_type,
        variables=variables or {},
        status=NotificationStatus.queued,
    )
    db.add(notification)
    return notification


def _build_payload(notification: SubscriberNotification) -> dict:
    subscriber = notification.subscriber
    return {
        "id": str(notification.id),
        "type": notification.notification_type.value,
        "tenant_id": str(notification.tenant_id),
        "subscriber_id": str(notification.subscriber_id),
        "subscriber": {
            "name": subscriber.name,
            "username": subscriber.username,
            "phone": subscriber.phone,
            "email": subscriber.email,
        },
        "variables": notification.variables or {},
    }


def _post_notification(url: str, payload: dict) -> str | None:
    try:
        response = httpx.post(url, json=payload, timeout=settings.notification_timeout_seconds)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        return str(exc) or exc.__class__.__name__
    return None


def deliver_queued_notifications(
    db: Session, limit: int | None = None
) -> NotificationDeliveryResponse:
    url = settings.notification_webhook_url
    if not url:
        logger.warning("NOTIFICATION_WEBHOOK_URL not configured; notifications stay queued.")
        return NotificationDeliveryResponse(scanned=0, delivered=0, failed=0)

    notifications = (
        db.query(SubscriberNotification)
        .filter(SubscriberNotification.status == NotificationStatus.queued)
        .order_by(SubscriberNotification.created_at)
        .limit(limit or settings.notification_batch_size)
        .all()
    )
    if not notifications:
        return NotificationDeliveryResponse(scanned=0, delivered=0, failed=0)

    payloads: dict[uuid.UUID, dict] = {item.id: _build_payload(item) for item in notifications}
    errors: dict[uuid.UUID, str | None] = {}
    # Sessions are not thread safe: workers only do HTTP, rows are updated here.
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=max(1, settings.notification_concurrency)
    ) as executor:
        futures = {
            executor.submit(_post_notification, url, payload): notification_id
            for notification_id, payload in payloads.items()
        }
        for future in concurrent.futures.as_completed(futures):
            errors[futures[future]] = future.result()

    delivered = failed = 0
    now = datetime.now(UTC)
    for notification in notifications:
        error = errors.get(notification.id)
        notification.attempts = (notification.attempts or 0) + 1
        if error is None:
            notification.status = NotificationStatus.delivered
            notification.sent_at = now
            notification.last_error = None
            delivered += 1
            continue
        failed += 1
        notification.last_error = error[:2000]
        if notification.attempts >= settings.notification_max_attempts:
            notification.status = NotificationStatus.failed
        logger.warning(
            "Notification %s (%s) delivery failed: %s",
            notification.id,
            notification.notification_type.value,
            error,
        )
    db.commit()
    return NotificationDeliveryResponse(
        scanned=len(notifications), delivered=delivered, failed=failed
    )
