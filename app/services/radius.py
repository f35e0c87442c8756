"""Provisioning of subscriber, plan and NAS policy into FreeRADIUS.

Every public write runs as one delete-then-insert transaction so FreeRADIUS
never reads a half-written policy. Pass ``commit=False`` to fold a write into
a transaction owned by the caller.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.models.catalog import NasDevice, Plan
from app.models.radius import RadAcct
from app.models.subscriber import Subscriber, SubscriberStatus
from app.schemas.radius import SessionHistoryFilter
from app.services import radius_store
from app.services.bandwidth_policy import plan_to_radius_attributes
from app.services.credential_crypto import decrypt_credential
from app.services.radius_naming import (
    build_radius_groupname,
    build_radius_username,
    format_radius_expiration,
    tenant_prefix,
)

logger = logging.getLogger(__name__)

ATTR_PASSWORD = "Cleartext-Password"
ATTR_EXPIRATION = "Expiration"
ATTR_CALLING_STATION = "Calling-Station-Id"
ATTR_AUTH_TYPE = "Auth-Type"
ATTR_FRAMED_IP = "Framed-IP-Address"
REJECT = "Reject"
STALE_TERMINATE_CAUSE = "Stale-Session"
GROUP_PRIORITY = 1

ACCESS_ALLOWED_STATUSES = frozenset({SubscriberStatus.active, SubscriberStatus.trial})

_MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}$")


@contextmanager
def _policy_transaction(db: Session, commit: bool):
    try:
        yield
        if commit:
            db.commit()
    except Exception:
        if commit:
            db.rollback()
        raise


def normalize_mac(mac: str) -> str:
    value = mac.strip()
    if not _MAC_RE.match(value):
        raise ValueError(f"Invalid MAC address: {mac}")
    return value.upper()


def has_network_access(subscriber: Subscriber) -> bool:
    return subscriber.deleted_at is None and subscriber.status in ACCESS_ALLOWED_STATUSES


# -- five core sync operations -------------------------------------------------


def sync_subscriber_auth(
    db: Session, tenant_slug: str, subscriber: Subscriber, commit: bool = True
) -> None:
    """Write the subscriber's credential as the only radcheck row.

    All other radcheck rows for the username (expiration, MAC binding, reject
    marker) are cleared too; callers that need them must write them again.
    """
    password = decrypt_credential(subscriber.radius_password)
    if not password:
        raise ValueError(f"Subscriber {subscriber.username} has no stored credential")
    username = build_radius_username(tenant_slug, subscriber.username)
    with _policy_transaction(db, commit):
        radius_store.delete_check_attributes(db, username)
        radius_store.replace_check_attribute(db, username, ATTR_PASSWORD, password)


def sync_subscriber_plan(
    db: Session,
    tenant_slug: str,
    username: str,
    plan_id: uuid.UUID | str | None,
    commit: bool = True,
) -> None:
    radius_username = build_radius_username(tenant_slug, username)
    groupname = build_radius_groupname(tenant_slug, plan_id) if plan_id else None
    with _policy_transaction(db, commit):
        radius_store.replace_group_membership(db, radius_username, groupname, GROUP_PRIORITY)


def sync_plan_bandwidth(
    db: Session,
    tenant_slug: str,
    plan: Plan,
    vendor: str | None = None,
    commit: bool = True,
) -> None:
    groupname = build_radius_groupname(tenant_slug, plan.id)
    attributes = plan_to_radius_attributes(plan, vendor)
    with _policy_transaction(db, commit):
        radius_store.replace_group_policy(db, groupname, attributes)


def sync_nas_device(db: Session, device: NasDevice, commit: bool = True) -> None:
    secret = decrypt_credential(device.secret) or ""
    shortname = (device.short_name or device.name)[: settings.nas_shortname_max_length]
    with _policy_transaction(db, commit):
        radius_store.upsert_nas(
            db,
            nasname=device.nas_ip,
            shortname=shortname,
            nas_type=device.nas_type.value.lower(),
            secret=secret,
            description=device.description,
        )


def remove_subscriber_auth(
    db: Session, tenant_slug: str, username: str, commit: bool = True
) -> None:
    radius_username = build_radius_username(tenant_slug, username)
    with _policy_transaction(db, commit):
        radius_store.delete_check_attributes(db, radius_username)
        radius_store.delete_reply_attributes(db, radius_username)
        radius_store.delete_group_membership(db, radius_username)


def remove_nas_device(db: Session, nas_ip: str, commit: bool = True) -> None:
    with _policy_transaction(db, commit):
        if not radius_store.delete_nas(db, nas_ip):
            logger.debug("NAS %s not registered in RADIUS, nothing to remove", nas_ip)


def remove_plan_bandwidth(
    db: Session, tenant_slug: str, plan_id: uuid.UUID | str, commit: bool = True
) -> None:
    groupname = build_radius_groupname(tenant_slug, plan_id)
    with _policy_transaction(db, commit):
        radius_store.delete_group_policy(db, groupname)


# -- single-attribute helpers ------------------------------------------------


def set_mac_binding(
    db: Session, tenant_slug: str, username: str, mac: str | None, commit: bool = True
) -> None:
    radius_username = build_radius_username(tenant_slug, username)
    value = normalize_mac(mac) if mac else None
    with _policy_transaction(db, commit):
        radius_store.replace_check_attribute(db, radius_username, ATTR_CALLING_STATION, value)


def set_static_ip(
    db: Session, tenant_slug: str, username: str, ip: str | None, commit: bool = True
) -> None:
    radius_username = build_radius_username(tenant_slug, username)
    with _policy_transaction(db, commit):
        radius_store.replace_reply_attribute(db, radius_username, ATTR_FRAMED_IP, ip or None)


def set_expiration(
    db: Session,
    tenant_slug: str,
    username: str,
    expiry: datetime | None,
    commit: bool = True,
) -> None:
    radius_username = build_radius_username(tenant_slug, username)
    value = format_radius_expiration(expiry) if expiry else None
    with _policy_transaction(db, commit):
        radius_store.replace_check_attribute(db, radius_username, ATTR_EXPIRATION, value)


def set_reject(
    db: Session, tenant_slug: str, username: str, rejected: bool, commit: bool = True
) -> None:
    radius_username = build_radius_username(tenant_slug, username)
    with _policy_transaction(db, commit):
        radius_store.replace_check_attribute(
            db, radius_username, ATTR_AUTH_TYPE, REJECT if rejected else None
        )


def sync_subscriber_reply_attributes(
    db: Session, tenant_slug: str, subscriber: Subscriber, commit: bool = True
) -> None:
    set_static_ip(db, tenant_slug, subscriber.username, subscriber.static_ip, commit=commit)


# -- status driven policy ----------------------------------------------------


def enable_subscriber_radius(
    db: Session, tenant_slug: str, subscriber: Subscriber, commit: bool = True
) -> None:
    """Lift the reject marker and restore plan membership."""
    with _policy_transaction(db, commit):
        set_reject(db, tenant_slug, subscriber.username, False, commit=False)
        set_expiration(
            db, tenant_slug, subscriber.username, subscriber.expiry_date, commit=False
        )
        set_mac_binding(
            db, tenant_slug, subscriber.username, subscriber.mac_address, commit=False
        )
        sync_subscriber_plan(
            db, tenant_slug, subscriber.username, subscriber.plan_id, commit=False
        )


def disable_subscriber_radius(
    db: Session, tenant_slug: str, username: str, commit: bool = True
) -> None:
    """Reject future authentications and drop plan membership.

    MAC binding and static IP rows are kept so a later reactivation restores
    the subscriber exactly.
    """
    with _policy_transaction(db, commit):
        set_reject(db, tenant_slug, username, True, commit=False)
        radius_store.delete_group_membership(db, build_radius_username(tenant_slug, username))


def sync_subscriber_policy(
    db: Session, tenant_slug: str, subscriber: Subscriber, commit: bool = True
) -> None:
    """Rebuild every policy row for one subscriber from its current record."""
    with _policy_transaction(db, commit):
        if subscriber.deleted_at is not None or subscriber.status == SubscriberStatus.disabled:
            remove_subscriber_auth(db, tenant_slug, subscriber.username, commit=False)
            return
        sync_subscriber_auth(db, tenant_slug, subscriber, commit=False)
        sync_subscriber_reply_attributes(db, tenant_slug, subscriber, commit=False)
        if has_network_access(subscriber):
            enable_subscriber_radius(db, tenant_slug, subscriber, commit=False)
        else:
            set_expiration(
                db, tenant_slug, subscriber.username, subscriber.expiry_date, commit=False
            )
            set_mac_binding(
                db, tenant_slug, subscriber.username, subscriber.mac_address, commit=False
            )
            disable_subscriber_radius(db, tenant_slug, subscriber.username, commit=False)


# -- accounting queries ------------------------------------------------------


def get_online_users(db: Session, tenant_slug: str) -> list[RadAcct]:
    return (
        radius_store.open_sessions_query(db)
        .filter(RadAcct.username.startswith(tenant_prefix(tenant_slug), autoescape=True))
        .order_by(RadAcct.acctstarttime.desc())
        .all()
    )


def get_user_active_sessions(db: Session, tenant_slug: str, username: str) -> list[RadAcct]:
    return (
        radius_store.open_sessions_query(db)
        .filter(RadAcct.username == build_radius_username(tenant_slug, username))
        .order_by(RadAcct.acctstarttime.desc())
        .all()
    )


def get_session_history(db: Session, params: SessionHistoryFilter) -> dict:
    query = db.query(RadAcct).filter(
        RadAcct.username.startswith(tenant_prefix(params.tenant_slug), autoescape=True)
    )
    if params.subscriber_username:
        query = query.filter(
            RadAcct.username
            == build_radius_username(params.tenant_slug, params.subscriber_username)
        )
    if params.nas_ip:
        query = query.filter(RadAcct.nasipaddress == params.nas_ip)
    if params.start_date:
        query = query.filter(RadAcct.acctstarttime >= params.start_date)
    if params.end_date:
        query = query.filter(RadAcct.acctstarttime <= params.end_date)
    if params.only_active:
        query = query.filter(RadAcct.acctstoptime.is_(None))

    total = query.count()
    items = (
        query.order_by(RadAcct.acctstarttime.desc(), RadAcct.radacctid.desc())
        .offset((params.page - 1) * params.page_size)
        .limit(params.page_size)
        .all()
    )
    return {
        "items": items,
        "meta": {
            "total": total,
            "page": params.page,
            "page_size": params.page_size,
            "total_pages": math.ceil(total / params.page_size) if total else 0,
        },
    }


def cleanup_stale_sessions(
    db: Session,
    nas_ip: str | None = None,
    stale_minutes: int | None = None,
    tenant_slug: str | None = None,
    now: datetime | None = None,
) -> int:
    """Close open accounting rows whose NAS stopped sending interim updates."""
    now = now or datetime.now(UTC)
    minutes = stale_minutes if stale_minutes is not None else settings.stale_session_minutes
    threshold = now - timedelta(minutes=minutes)
    query = radius_store.open_sessions_query(db).filter(
        radius_store.stale_sessions_filter(threshold)
    )
    if nas_ip:
        query = query.filter(RadAcct.nasipaddress == nas_ip)
    if tenant_slug:
        query = query.filter(
            RadAcct.username.startswith(tenant_prefix(tenant_slug), autoescape=True)
        )
    try:
        closed = query.update(
            {
                RadAcct.acctstoptime: now,
                RadAcct.acctterminatecause: STALE_TERMINATE_CAUSE,
            },
            synchronize_session=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    if closed:
        logger.info("Closed %s stale RADIUS sessions older than %s minutes", closed, minutes)
    return closed
