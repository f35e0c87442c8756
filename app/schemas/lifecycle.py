from datetime import datetime

from pydantic import BaseModel, Field


class LifecycleRunRequest(BaseModel):
    run_at: datetime | None = None


class ExpiryReminderRunResponse(BaseModel):
    run_at: datetime
    tenants_scanned: int
    reminders_queued: int
    failures: int


class GracePeriodRunResponse(BaseModel):
    run_at: datetime
    tenants_scanned: int
    subscribers_scanned: int
    subscribers_renewed: int
    subscribers_expired: int
    sessions_disconnected: int
    failures: int


class StaleSessionRunRequest(BaseModel):
    nas_ip: str | None = None
    stale_minutes: int | None = Field(default=None, ge=1)


class StaleSessionRunResponse(BaseModel):
    run_at: datetime
    sessions_closed: int


class NotificationDeliveryResponse(BaseModel):
    scanned: int
    delivered: int
    failed: int
