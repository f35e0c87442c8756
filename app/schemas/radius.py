from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.services.radius_naming import TENANT_SLUG_PATTERN, extract_subscriber_username


class SessionHistoryFilter(BaseModel):
    tenant_slug: str = Field(max_length=40, pattern=TENANT_SLUG_PATTERN)
    subscriber_username: str | None = None
    nas_ip: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    only_active: bool = False
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=500)


class RadiusSessionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    radacctid: int
    acctsessionid: str
    username: str | None = None
    nasipaddress: str
    framedipaddress: str | None = None
    callingstationid: str | None = None
    acctstarttime: datetime | None = None
    acctupdatetime: datetime | None = None
    acctstoptime: datetime | None = None
    acctsessiontime: int | None = None
    acctinputoctets: int | None = None
    acctoutputoctets: int | None = None
    acctterminatecause: str | None = None

    @computed_field
    @property
    def subscriber_username(self) -> str | None:
        if not self.username:
            return None
        return extract_subscriber_username(self.username)


class PaginationMeta(BaseModel):
    total: int
    page: int
    page_size: int
    total_pages: int


class SessionHistoryPage(BaseModel):
    items: list[RadiusSessionRead]
    meta: PaginationMeta


class StaleSessionCleanupRequest(BaseModel):
    nas_ip: str | None = None
    tenant_slug: str | None = Field(default=None, max_length=40, pattern=TENANT_SLUG_PATTERN)
    stale_minutes: int | None = Field(default=None, ge=1)


class StaleSessionCleanupResponse(BaseModel):
    closed: int


class DisconnectResponse(BaseModel):
    attempted: int
    disconnected: int


class OutboxReplayResponse(BaseModel):
    scanned: int
    succeeded: int
    failed: int
    abandoned: int
