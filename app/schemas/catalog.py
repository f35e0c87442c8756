from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.catalog import (
    NasDeviceStatus,
    NasType,
    PlanStatus,
    SpeedUnit,
    ValidityUnit,
)

_TIME_SLOT_RE = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


def _validate_time_slot(value: str | None) -> str | None:
    if value is None or value == "":
        return None
    if not _TIME_SLOT_RE.match(value):
        raise ValueError("Time slot must be HH:MM")
    return value


class PlanBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = None
    status: PlanStatus = PlanStatus.active
    download_speed: int = Field(gt=0)
    upload_speed: int = Field(gt=0)
    speed_unit: SpeedUnit = SpeedUnit.mbps
    fup_download_speed: int | None = Field(default=None, gt=0)
    fup_upload_speed: int | None = Field(default=None, gt=0)
    fup_speed_unit: SpeedUnit | None = None
    data_limit_mb: int | None = Field(default=None, gt=0)
    burst_download_speed: int | None = Field(default=None, gt=0)
    burst_upload_speed: int | None = Field(default=None, gt=0)
    burst_threshold: int | None = Field(default=None, ge=0)
    burst_time: int | None = Field(default=None, gt=0)
    time_slot_start: str | None = None
    time_slot_end: str | None = None
    simultaneous_devices: int | None = Field(default=1, ge=1)
    priority: int = Field(default=8, ge=1, le=8)
    pool_name: str | None = Field(default=None, max_length=64)
    validity_amount: int = Field(default=30, gt=0)
    validity_unit: ValidityUnit = ValidityUnit.days
    price: Decimal = Field(default=Decimal("0.00"), ge=0)

    @field_validator("time_slot_start", "time_slot_end")
    @classmethod
    def _time_slot(cls, value):
        return _validate_time_slot(value)


class PlanCreate(PlanBase):
    pass


class PlanUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = None
    status: PlanStatus | None = None
    download_speed: int | None = Field(default=None, gt=0)
    upload_speed: int | None = Field(default=None, gt=0)
    speed_unit: SpeedUnit | None = None
    fup_download_speed: int | None = Field(default=None, gt=0)
    fup_upload_speed: int | None = Field(default=None, gt=0)
    fup_speed_unit: SpeedUnit | None = None
    data_limit_mb: int | None = Field(default=None, gt=0)
    burst_download_speed: int | None = Field(default=None, gt=0)
    burst_upload_speed: int | None = Field(default=None, gt=0)
    burst_threshold: int | None = Field(default=None, ge=0)
    burst_time: int | None = Field(default=None, gt=0)
    time_slot_start: str | None = None
    time_slot_end: str | None = None
    simultaneous_devices: int | None = Field(default=None, ge=1)
    priority: int | None = Field(default=None, ge=1, le=8)
    pool_name: str | None = Field(default=None, max_length=64)
    validity_amount: int | None = Field(default=None, gt=0)
    validity_unit: ValidityUnit | None = None
    price: Decimal | None = Field(default=None, ge=0)

    @field_validator("time_slot_start", "time_slot_end")
    @classmethod
    def _time_slot(cls, value):
        return _validate_time_slot(value)


class PlanRead(PlanBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    simultaneous_devices: int | None = None
    created_at: datetime
    updated_at: datetime


class NasDeviceBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    short_name: str | None = Field(default=None, max_length=64)
    nas_ip: str = Field(min_length=1, max_length=64)
    nas_type: NasType = NasType.mikrotik
    coa_port: int | None = Field(default=None, ge=1, le=65535)
    description: str | None = None
    status: NasDeviceStatus = NasDeviceStatus.active


class NasDeviceCreate(NasDeviceBase):
    secret: str = Field(min_length=1, max_length=60)


class NasDeviceUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    short_name: str | None = Field(default=None, max_length=64)
    nas_ip: str | None = Field(default=None, min_length=1, max_length=64)
    secret: str | None = Field(default=None, min_length=1, max_length=60)
    nas_type: NasType | None = None
    coa_port: int | None = Field(default=None, ge=1, le=65535)
    description: str | None = None
    status: NasDeviceStatus | None = None


class NasDeviceRead(NasDeviceBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    created_at: datetime
    updated_at: datetime
