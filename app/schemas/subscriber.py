from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.subscriber import SubscriberStatus

_MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}$")
_USERNAME_RE = re.compile(r"^[A-Za-z0-9._@-]+$")


def _validate_mac(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not _MAC_RE.match(value):
        raise ValueError("Invalid MAC address format (expected AA:BB:CC:DD:EE:FF)")
    return value.upper()


class SubscriberBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    phone: str | None = Field(default=None, max_length=40)
    email: str | None = Field(default=None, max_length=255)
    address: str | None = None
    plan_id: UUID | None = None
    nas_device_id: UUID | None = None
    mac_address: str | None = None
    static_ip: str | None = Field(default=None, max_length=64)
    auto_renewal: bool = False
    expiry_date: datetime | None = None
    notes: str | None = None

    @field_validator("mac_address")
    @classmethod
    def _mac(cls, value):
        return _validate_mac(value)


class SubscriberCreate(SubscriberBase):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=128)
    status: SubscriberStatus = SubscriberStatus.active
    balance: Decimal = Decimal("0.00")

    @field_validator("username")
    @classmethod
    def _username(cls, value: str) -> str:
        value = value.strip()
        if not _USERNAME_RE.match(value):
            raise ValueError("Username may only contain letters, digits and . _ @ -")
        return value


class SubscriberUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    phone: str | None = Field(default=None, max_length=40)
    email: str | None = Field(default=None, max_length=255)
    address: str | None = None
    password: str | None = Field(default=None, min_length=1, max_length=128)
    plan_id: UUID | None = None
    nas_device_id: UUID | None = None
    mac_address: str | None = None
    static_ip: str | None = Field(default=None, max_length=64)
    balance: Decimal | None = None
    auto_renewal: bool | None = None
    expiry_date: datetime | None = None
    notes: str | None = None

    @field_validator("mac_address")
    @classmethod
    def _mac(cls, value):
        return _validate_mac(value)


class SubscriberStatusUpdate(BaseModel):
    status: SubscriberStatus


class SubscriberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    name: str
    username: str
    phone: str | None = None
    email: str | None = None
    status: SubscriberStatus
    plan_id: UUID | None = None
    nas_device_id: UUID | None = None
    mac_address: str | None = None
    static_ip: str | None = None
    balance: Decimal
    auto_renewal: bool
    expiry_date: datetime | None = None
    last_renewal_date: datetime | None = None
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class BulkImportError(BaseModel):
    row: int
    username: str | None = None
    error: str


class BulkImportResult(BaseModel):
    created: int
    failed: int
    errors: list[BulkImportError] = Field(default_factory=list)
