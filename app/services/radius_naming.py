"""Tenant namespacing for RADIUS usernames and group names.

One FreeRADIUS database serves every tenant, so each identifier written to it
carries the tenant slug as a prefix. The separator is an underscore, which a
slug may never contain; otherwise ``acme`` + ``x_bob`` and ``acme_x`` + ``bob``
would share a row.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime

TENANT_SLUG_PATTERN = r"^[a-z0-9][a-z0-9-]*$"
_SLUG_RE = re.compile(TENANT_SLUG_PATTERN)

_MONTH_ABBREVIATIONS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)


def validate_tenant_slug(tenant_slug: str) -> str:
    if not tenant_slug or not _SLUG_RE.match(tenant_slug):
        raise ValueError(
            f"Invalid tenant slug {tenant_slug!r}: use lowercase letters, digits and hyphens"
        )
    return tenant_slug


def tenant_prefix(tenant_slug: str) -> str:
    return f"{validate_tenant_slug(tenant_slug)}_"


def build_radius_username(tenant_slug: str, username: str) -> str:
    return f"{tenant_prefix(tenant_slug)}{username}"


def build_radius_groupname(tenant_slug: str, plan_id: uuid.UUID | str) -> str:
    return f"{tenant_prefix(tenant_slug)}{plan_id}"


def extract_subscriber_username(radius_username: str) -> str:
    """Strip the tenant slug from a RADIUS username.

    Slugs never contain an underscore, so everything after the first one is
    the raw username.
    """
    _, sep, rest = radius_username.partition("_")
    return rest if sep else radius_username


def format_radius_expiration(value: datetime) -> str:
    """Render a date the way rlm_expiration parses it: ``Jan 5 2026 23:59:59``.

    Access is granted until the end of the expiry day.
    """
    month = _MONTH_ABBREVIATIONS[value.month - 1]
    return f"{month} {value.day} {value.year} 23:59:59"
