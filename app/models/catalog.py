import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class SpeedUnit(enum.Enum):
    kbps = "kbps"
    mbps = "mbps"


class ValidityUnit(enum.Enum):
    hours = "hours"
    days = "days"
    weeks = "weeks"
    months = "months"


class PlanStatus(enum.Enum):
    active = "active"
    inactive = "inactive"


class NasType(enum.Enum):
    mikrotik = "mikrotik"
    cisco = "cisco"
    ubiquiti = "ubiquiti"
    other = "other"


class NasDeviceStatus(enum.Enum):
    active = "active"
    inactive = "inactive"


class Plan(Base):
    __tablename__ = "plans"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_plans_tenant_name"),
        CheckConstraint("priority BETWEEN 1 AND 8", name="ck_plans_priority_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[PlanStatus] = mapped_column(Enum(PlanStatus), default=PlanStatus.active)

    download_speed: Mapped[int] = mapped_column(Integer, nullable=False)
    upload_speed: Mapped[int] = mapped_column(Integer, nullable=False)
    speed_unit: Mapped[SpeedUnit] = mapped_column(Enum(SpeedUnit), default=SpeedUnit.mbps)

    fup_download_speed: Mapped[int | None] = mapped_column(Integer)
    fup_upload_speed: Mapped[int | None] = mapped_column(Integer)
    fup_speed_unit: Mapped[SpeedUnit | None] = mapped_column(Enum(SpeedUnit))
    data_limit_mb: Mapped[int | None] = mapped_column(Integer)

    burst_download_speed: Mapped[int | None] = mapped_column(Integer)
    burst_upload_speed: Mapped[int | None] = mapped_column(Integer)
    burst_threshold: Mapped[int | None] = mapped_column(Integer)
    burst_time: Mapped[int | None] = mapped_column(Integer)

    # "HH:MM" local to the NAS.
    time_slot_start: Mapped[str | None] = mapped_column(String(5))
    time_slot_end: Mapped[str | None] = mapped_column(String(5))

    simultaneous_devices: Mapped[int | None] = mapped_column(Integer, default=1)
    priority: Mapped[int] = mapped_column(Integer, default=8)
    pool_name: Mapped[str | None] = mapped_column(String(64))

    validity_amount: Mapped[int] = mapped_column(Integer, default=30)
    validity_unit: Mapped[ValidityUnit] = mapped_column(
        Enum(ValidityUnit), default=ValidityUnit.days
    )
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    tenant = relationship("Tenant", back_populates="plans")
    subscribers = relationship("Subscriber", back_populates="plan")


class NasDevice(Base):
    __tablename__ = "nas_devices"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    short_name: Mapped[str | None] = mapped_column(String(64))
    # One physical device cannot be registered twice, even across tenants.
    nas_ip: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    secret: Mapped[str] = mapped_column(String(512), nullable=False)
    nas_type: Mapped[NasType] = mapped_column(Enum(NasType), default=NasType.mikrotik)
    coa_port: Mapped[int | None] = mapped_column(Integer)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[NasDeviceStatus] = mapped_column(
        Enum(NasDeviceStatus), default=NasDeviceStatus.active
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    tenant = relationship("Tenant", back_populates="nas_devices")
    subscribers = relationship("Subscriber", back_populates="nas_device")
