import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class SubscriberStatus(enum.Enum):
    active = "active"
    trial = "trial"
    suspended = "suspended"
    expired = "expired"
    disabled = "disabled"


class Subscriber(Base):
    __tablename__ = "subscribers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "username", name="uq_subscribers_tenant_username"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(40))
    email: Mapped[str | None] = mapped_column(String(255))
    address: Mapped[str | None] = mapped_column(Text)

    # Raw username; the RADIUS username is "<tenant slug>_<username>".
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    radius_password: Mapped[str] = mapped_column(String(512), nullable=False)
    status: Mapped[SubscriberStatus] = mapped_column(
        Enum(SubscriberStatus), default=SubscriberStatus.active, index=True
    )

    plan_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("plans.id"), index=True
    )
    nas_device_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("nas_devices.id"), index=True
    )
    mac_address: Mapped[str | None] = mapped_column(String(17))
    static_ip: Mapped[str | None] = mapped_column(String(64))

    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    auto_renewal: Mapped[bool] = mapped_column(Boolean, default=False)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    last_renewal_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    notes: Mapped[str | None] = mapped_column(Text)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    tenant = relationship("Tenant", back_populates="subscribers")
    plan = relationship("Plan", back_populates="subscribers")
    nas_device = relationship("NasDevice", back_populates="subscribers")
    notifications = relationship("SubscriberNotification", back_populates="subscriber")
