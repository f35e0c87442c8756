"""Plan to RADIUS attribute encoding.

``plan_to_radius_attributes`` is pure: it reads a Plan and returns the ordered
attributes that make up the plan's group policy. Rate limits are encoded by a
vendor-specific function looked up by NAS type so new device families only
need a new encoder registered here.

MikroTik rate-limit grammar (download first, as configured on the plan)::

    rx/tx [burst_rx/burst_tx threshold_rx/threshold_tx time_rx/time_tx priority [min_rx/min_tx]]
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from app.config import settings
from app.models.catalog import NasType, Plan, SpeedUnit, ValidityUnit

OP_SET = ":="
DEFAULT_PRIORITY = 8

MIKROTIK_RATE_LIMIT = "Mikrotik-Rate-Limit"
WISPR_MAX_DOWN = "WISPr-Bandwidth-Max-Down"
WISPR_MAX_UP = "WISPr-Bandwidth-Max-Up"
FRAMED_POOL = "Framed-Pool"
SESSION_TIMEOUT = "Session-Timeout"
SIMULTANEOUS_USE = "Simultaneous-Use"
LOGIN_TIME = "Login-Time"


@dataclass(frozen=True)
class PolicyAttribute:
    attribute: str
    value: str
    priority: int
    op: str = OP_SET
    # Check attributes land in radgroupcheck, the rest in radgroupreply.
    is_check: bool = False


RateLimitEncoder = Callable[[Plan], list[PolicyAttribute]]


def _unit_suffix(unit: SpeedUnit | None) -> str:
    return "M" if unit == SpeedUnit.mbps else "k"


def _bits_per_second(speed: int, unit: SpeedUnit | None) -> int:
    return speed * (1_000_000 if unit == SpeedUnit.mbps else 1_000)


def _has_burst(plan: Plan) -> bool:
    return bool(plan.burst_download_speed and plan.burst_upload_speed and plan.burst_time)


def _has_fup(plan: Plan) -> bool:
    return bool(plan.fup_download_speed and plan.fup_upload_speed)


def _priority(plan: Plan) -> int:
    return plan.priority if plan.priority is not None else DEFAULT_PRIORITY


def build_fup_rate_limit(plan: Plan) -> str | None:
    """Throttled ``rx/tx`` rate applied once the plan's data threshold is hit."""
    if not _has_fup(plan):
        return None
    unit = _unit_suffix(plan.fup_speed_unit or plan.speed_unit)
    return f"{plan.fup_download_speed}{unit}/{plan.fup_upload_speed}{unit}"


def build_mikrotik_rate_limit(plan: Plan) -> str:
    unit = _unit_suffix(plan.speed_unit)
    rate = f"{plan.download_speed}{unit}/{plan.upload_speed}{unit}"
    fup_rate = build_fup_rate_limit(plan)
    priority = _priority(plan)
    if not _has_burst(plan) and fup_rate is None and priority == DEFAULT_PRIORITY:
        return rate

    if _has_burst(plan):
        burst = f"{plan.burst_download_speed}{unit}/{plan.burst_upload_speed}{unit}"
        threshold = f"{plan.burst_threshold}k" if plan.burst_threshold else "0"
        burst_time = f"{plan.burst_time}s/{plan.burst_time}s"
        segments = [rate, burst, f"{threshold}/{threshold}", burst_time, str(priority)]
    else:
        # Zero burst rate disables bursting on RouterOS.
        segments = [rate, "0/0", "0/0", "0/0", str(priority)]
    if fup_rate is not None:
        segments.append(fup_rate)
    return " ".join(segments)


def _mikrotik_attributes(plan: Plan) -> list[PolicyAttribute]:
    return [PolicyAttribute(MIKROTIK_RATE_LIMIT, build_mikrotik_rate_limit(plan), 1)]


def _wispr_attributes(plan: Plan) -> list[PolicyAttribute]:
    return [
        PolicyAttribute(
            WISPR_MAX_DOWN, str(_bits_per_second(plan.download_speed, plan.speed_unit)), 1
        ),
        PolicyAttribute(
            WISPR_MAX_UP, str(_bits_per_second(plan.upload_speed, plan.speed_unit)), 1
        ),
    ]


_RATE_LIMIT_ENCODERS: dict[NasType, RateLimitEncoder] = {
    NasType.mikrotik: _mikrotik_attributes,
    NasType.cisco: _wispr_attributes,
    NasType.ubiquiti: _wispr_attributes,
    NasType.other: _wispr_attributes,
}


def register_rate_limit_encoder(nas_type: NasType, encoder: RateLimitEncoder) -> None:
    _RATE_LIMIT_ENCODERS[nas_type] = encoder


def resolve_vendor(vendor: NasType | str | None) -> NasType:
    if vendor is None:
        vendor = settings.default_rate_limit_vendor
    if isinstance(vendor, NasType):
        return vendor
    try:
        return NasType(str(vendor).strip().lower())
    except ValueError:
        return NasType.other


def rate_limit_attributes(plan: Plan, vendor: NasType | str | None = None) -> list[PolicyAttribute]:
    """Vendor rate attributes for ``plan``; also what a CoA rate change carries."""
    encoder = _RATE_LIMIT_ENCODERS.get(resolve_vendor(vendor), _wispr_attributes)
    return list(encoder(plan))


def _login_time(plan: Plan) -> str | None:
    if not plan.time_slot_start or not plan.time_slot_end:
        return None
    start = plan.time_slot_start.replace(":", "")
    end = plan.time_slot_end.replace(":", "")
    return f"Al{start}-{end}"


def _session_timeout(plan: Plan) -> str | None:
    if plan.validity_unit != ValidityUnit.hours or not plan.validity_amount:
        return None
    return str(plan.validity_amount * 3600)


def plan_to_radius_attributes(
    plan: Plan, vendor: NasType | str | None = None
) -> list[PolicyAttribute]:
    """Return the ordered group policy for ``plan``.

    Reply attributes come first in row-priority order, followed by the check
    attributes (session cap and login window). Optional plan fields that are
    unset simply produce no attribute.
    """
    attributes = rate_limit_attributes(plan, vendor)
    if plan.pool_name:
        attributes.append(PolicyAttribute(FRAMED_POOL, plan.pool_name, 2))
    session_timeout = _session_timeout(plan)
    if session_timeout is not None:
        attributes.append(PolicyAttribute(SESSION_TIMEOUT, session_timeout, 3))
    if plan.simultaneous_devices:
        attributes.append(
            PolicyAttribute(SIMULTANEOUS_USE, str(plan.simultaneous_devices), 4, is_check=True)
        )
    login_time = _login_time(plan)
    if login_time is not None:
        attributes.append(PolicyAttribute(LOGIN_TIME, login_time, 5, is_check=True))
    return attributes

