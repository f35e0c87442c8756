from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.subscriber import SubscriberStatus


class CSVRowModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_cells(cls, data):
        # Blank cells fall back to field defaults; short rows carry None values.
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for key, value in data.items():
            if not isinstance(key, str) or value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            cleaned[key.strip()] = value
        return cleaned


class SubscriberImportRow(CSVRowModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=128)
    name: str = Field(min_length=1, max_length=160)
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    plan_id: UUID | None = None
    nas_device_id: UUID | None = None
    mac_address: str | None = None
    static_ip: str | None = None
    expiry_date: datetime | None = None
    auto_renewal: bool = False
    balance: Decimal = Decimal("0.00")
    status: SubscriberStatus = SubscriberStatus.active
    notes: str | None = None
