import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Enum, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.db import Base
from app.services.radius_naming import validate_tenant_slug


class TenantStatus(enum.Enum):
    active = "active"
    trial = "trial"
    suspended = "suspended"
    inactive = "inactive"


class Tenant(Base):
    __tablename__ = "tenants"
    __table_args__ = (
        CheckConstraint("slug NOT LIKE '%!_%' ESCAPE '!'", name="ck_tenants_slug_no_underscore"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    # Prefix for every RADIUS username/group name owned by this tenant.
    slug: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    status: Mapped[TenantStatus] = mapped_column(
        Enum(TenantStatus), default=TenantStatus.active
    )
    grace_period_days: Mapped[int | None] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    subscribers = relationship("Subscriber", back_populates="tenant")
    plans = relationship("Plan", back_populates="tenant")
    nas_devices = relationship("NasDevice", back_populates="tenant")

    @validates("slug")
    def _validate_slug(self, _key, value):
        return validate_tenant_slug(value)
