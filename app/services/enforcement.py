"""Out-of-band session control (RFC 5176 CoA / Disconnect-Message).

Commands are best effort: every public function reports failure through its
return value and never raises for network problems, so lifecycle transitions
can proceed when a NAS is unreachable. Policy changes still take effect on
the subscriber's next authentication.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from pyrad.client import Client, Timeout
from pyrad.dictionary import Dictionary
from pyrad.packet import CoAACK, CoARequest, DisconnectACK, DisconnectRequest
from sqlalchemy.orm import Session

from app.config import settings
from app.metrics import record_coa
from app.models.catalog import NasDevice, NasType, Plan
from app.models.radius import RadAcct
from app.models.subscriber import Subscriber
from app.services import radius as radius_service
from app.services.bandwidth_policy import (
    MIKROTIK_RATE_LIMIT,
    PolicyAttribute,
    rate_limit_attributes,
)
from app.services.credential_crypto import decrypt_credential
from app.services.radius_naming import build_radius_username

logger = logging.getLogger(__name__)


@dataclass
class SessionDisconnectResult:
    attempted: int = 0
    disconnected: int = 0


@lru_cache(maxsize=4)
def _load_dictionary(path: str) -> Dictionary:
    return Dictionary(path)


def _build_client(device_address: str, secret: str, coa_port: int | None) -> Client | None:
    try:
        dictionary = _load_dictionary(settings.radius_dictionary_path)
    except Exception as exc:
        logger.warning("Failed to load RADIUS dictionary: %s", exc)
        return None
    client = Client(
        server=device_address,
        secret=secret.encode("utf-8"),
        dict=dictionary,
        coaport=int(coa_port or settings.coa_port),
    )
    client.retries = settings.coa_retries
    client.timeout = settings.coa_timeout_seconds
    return client


def _coa_value(attribute: str, value: str):
    """Policy rows store text; integer attributes must be packed as numbers."""
    dictionary = _load_dictionary(settings.radius_dictionary_path)
    try:
        attr_type = dictionary.attributes[attribute].type
    except (AttributeError, KeyError):
        return value
    return int(value) if attr_type == "integer" else value


def _send(client: Client, request, ack_code: int, command: str, device_address: str) -> bool:
    try:
        reply = client.SendPacket(request)
    except Timeout:
        logger.warning("CoA %s to NAS %s timed out.", command, device_address)
        record_coa(command, False)
        return False
    except Exception as exc:
        logger.warning("CoA %s to NAS %s failed: %s", command, device_address, exc)
        record_coa(command, False)
        return False
    success = reply is not None and reply.code == ack_code
    if not success:
        logger.warning(
            "CoA %s rejected by NAS %s (code=%s).",
            command,
            device_address,
            getattr(reply, "code", None),
        )
    record_coa(command, success)
    return success


def disconnect_user(
    device_address: str,
    secret: str,
    radius_username: str,
    session_id: str | None = None,
    framed_ip: str | None = None,
    coa_port: int | None = None,
) -> bool:
    if not device_address or not secret:
        logger.warning("Missing NAS address or secret for disconnect of %s.", radius_username)
        return False
    client = _build_client(device_address, secret, coa_port)
    if client is None:
        return False
    try:
        request = client.CreateCoAPacket(code=DisconnectRequest)
        request["User-Name"] = radius_username
        if session_id:
            request["Acct-Session-Id"] = session_id
        if framed_ip:
            request["Framed-IP-Address"] = framed_ip
    except Exception as exc:
        logger.warning("Could not build Disconnect-Request for %s: %s", radius_username, exc)
        return False
    return _send(client, request, DisconnectACK, "disconnect", device_address)


def change_user_bandwidth(
    device_address: str,
    secret: str,
    radius_username: str,
    rate_limit: str | list[PolicyAttribute],
    session_id: str | None = None,
    coa_port: int | None = None,
) -> bool:
    """Send a CoA-Request carrying new rate attributes for one session.

    ``rate_limit`` is either a ready ``Mikrotik-Rate-Limit`` value or the
    vendor attributes produced by ``rate_limit_attributes``.
    """
    if not device_address or not secret:
        logger.warning("Missing NAS address or secret for rate change of %s.", radius_username)
        return False
    if isinstance(rate_limit, str):
        rate_limit = [PolicyAttribute(MIKROTIK_RATE_LIMIT, rate_limit, 1)]
    client = _build_client(device_address, secret, coa_port)
    if client is None:
        return False
    try:
        request = client.CreateCoAPacket(code=CoARequest)
        request["User-Name"] = radius_username
        if session_id:
            request["Acct-Session-Id"] = session_id
        for item in rate_limit:
            request[item.attribute] = _coa_value(item.attribute, item.value)
    except KeyError as exc:
        logger.warning("Rate attribute %s not in RADIUS dictionary.", exc)
        return False
    except Exception as exc:
        logger.warning("Could not build CoA-Request for %s: %s", radius_username, exc)
        return False
    return _send(client, request, CoAACK, "rate_change", device_address)


def _nas_for_session(db: Session, session: RadAcct) -> NasDevice | None:
    return db.query(NasDevice).filter(NasDevice.nas_ip == session.nasipaddress).first()


def _session_target(
    db: Session, session: RadAcct, fallback_secret: str | None
) -> tuple[str | None, int | None, NasType | None]:
    """Secret, CoA port and vendor of the registered device carrying ``session``."""
    device = _nas_for_session(db, session)
    if device is not None:
        return decrypt_credential(device.secret), device.coa_port, device.nas_type
    return fallback_secret, None, None


def disconnect_all_user_sessions(
    db: Session, tenant_slug: str, username: str, secret: str | None = None
) -> SessionDisconnectResult:
    """Send a Disconnect-Request for every open session of one subscriber.

    The registered NAS secret for each session's device is preferred;
    ``secret`` is used for devices that are not registered.
    """
    radius_username = build_radius_username(tenant_slug, username)
    sessions = radius_service.get_user_active_sessions(db, tenant_slug, username)
    result = SessionDisconnectResult()
    for session in sessions:
        result.attempted += 1
        session_secret, coa_port, _ = _session_target(db, session, secret)
        if disconnect_user(
            session.nasipaddress,
            session_secret or "",
            radius_username,
            session_id=session.acctsessionid,
            framed_ip=session.framedipaddress,
            coa_port=coa_port,
        ):
            result.disconnected += 1
    if result.attempted:
        logger.info(
            "Disconnected %s/%s sessions for %s.",
            result.disconnected,
            result.attempted,
            radius_username,
        )
    return result


def disconnect_subscriber(db: Session, subscriber: Subscriber) -> SessionDisconnectResult:
    fallback_secret = None
    if subscriber.nas_device is not None:
        fallback_secret = decrypt_credential(subscriber.nas_device.secret)
    return disconnect_all_user_sessions(
        db, subscriber.tenant.slug, subscriber.username, fallback_secret
    )




def apply_plan_to_online_sessions(db: Session, subscriber: Subscriber, plan: Plan) -> int:
    """Push the plan's rate limit to the subscriber's live sessions.

    Each session gets the rate attributes of its own device's vendor; sessions
    on unregistered devices fall back to the subscriber's assigned NAS.
    """
    tenant_slug = subscriber.tenant.slug
    radius_username = build_radius_username(tenant_slug, subscriber.username)
    fallback_secret = None
    fallback_type = None
    if subscriber.nas_device is not None:
        fallback_secret = decrypt_credential(subscriber.nas_device.secret)
        fallback_type = subscriber.nas_device.nas_type
    updated = 0
    for session in radius_service.get_user_active_sessions(db, tenant_slug, subscriber.username):
        session_secret, coa_port, nas_type = _session_target(db, session, fallback_secret)
        if change_user_bandwidth(
            session.nasipaddress,
            session_secret or "",
            radius_username,
            rate_limit_attributes(plan, nas_type or fallback_type),
            session_id=session.acctsessionid,
            coa_port=coa_port,
        ):
            updated += 1
    if updated:
        logger.info("Applied plan %s to %s live sessions of %s.", plan.id, updated, radius_username)
    return updated
