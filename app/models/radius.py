"""FreeRADIUS SQL schema plus the synchronization outbox.

The ``rad*`` and ``nas`` tables are read by the FreeRADIUS rlm_sql module, so
their table names, column names and value encodings follow the stock
FreeRADIUS PostgreSQL schema. Only this service writes policy rows.
"""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
_BigIntKey = BigInteger().with_variant(Integer, "sqlite")


class RadCheck(Base):
    __tablename__ = "radcheck"
    __table_args__ = (
        UniqueConstraint("username", "attribute", name="uq_radcheck_username_attribute"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, index=True, default="")
    attribute: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    op: Mapped[str] = mapped_column(String(2), nullable=False, default=":=")
    value: Mapped[str] = mapped_column(String(253), nullable=False, default="")


class RadReply(Base):
    __tablename__ = "radreply"
    __table_args__ = (
        UniqueConstraint("username", "attribute", name="uq_radreply_username_attribute"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, index=True, default="")
    attribute: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    op: Mapped[str] = mapped_column(String(2), nullable=False, default=":=")
    value: Mapped[str] = mapped_column(String(253), nullable=False, default="")


class RadUserGroup(Base):
    __tablename__ = "radusergroup"
    __table_args__ = (UniqueConstraint("username", name="uq_radusergroup_username"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    groupname: Mapped[str] = mapped_column(String(64), nullable=False, index=True, default="")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class RadGroupCheck(Base):
    __tablename__ = "radgroupcheck"
    __table_args__ = (
        UniqueConstraint("groupname", "attribute", name="uq_radgroupcheck_group_attribute"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    groupname: Mapped[str] = mapped_column(String(64), nullable=False, index=True, default="")
    attribute: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    op: Mapped[str] = mapped_column(String(2), nullable=False, default=":=")
    value: Mapped[str] = mapped_column(String(253), nullable=False, default="")


class RadGroupReply(Base):
    __tablename__ = "radgroupreply"
    __table_args__ = (
        UniqueConstraint("groupname", "attribute", name="uq_radgroupreply_group_attribute"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    groupname: Mapped[str] = mapped_column(String(64), nullable=False, index=True, default="")
    attribute: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    op: Mapped[str] = mapped_column(String(2), nullable=False, default=":=")
    value: Mapped[str] = mapped_column(String(253), nullable=False, default="")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Nas(Base):
    __tablename__ = "nas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nasname: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    shortname: Mapped[str] = mapped_column(String(32), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False, default="other")
    ports: Mapped[int | None] = mapped_column(Integer)
    secret: Mapped[str] = mapped_column(String(60), nullable=False, default="secret")
    server: Mapped[str | None] = mapped_column(String(64))
    community: Mapped[str | None] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(String(200), default="RADIUS Client")


class RadAcct(Base):
    __tablename__ = "radacct"
    __table_args__ = (
        Index("ix_radacct_open_sessions", "username", "acctstoptime"),
    )

    radacctid: Mapped[int] = mapped_column(_BigIntKey, primary_key=True, autoincrement=True)
    acctsessionid: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    acctuniqueid: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    username: Mapped[str | None] = mapped_column(String(64), index=True)
    groupname: Mapped[str | None] = mapped_column(String(64))
    realm: Mapped[str | None] = mapped_column(String(64))
    nasipaddress: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    nasportid: Mapped[str | None] = mapped_column(String(32))
    nasporttype: Mapped[str | None] = mapped_column(String(32))
    acctstarttime: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    acctupdatetime: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    acctstoptime: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    acctinterval: Mapped[int | None] = mapped_column(Integer)
    acctsessiontime: Mapped[int | None] = mapped_column(BigInteger)
    acctauthentic: Mapped[str | None] = mapped_column(String(32))
    connectinfo_start: Mapped[str | None] = mapped_column(String(50))
    connectinfo_stop: Mapped[str | None] = mapped_column(String(50))
    acctinputoctets: Mapped[int | None] = mapped_column(BigInteger)
    acctoutputoctets: Mapped[int | None] = mapped_column(BigInteger)
    calledstationid: Mapped[str | None] = mapped_column(String(50))
    callingstationid: Mapped[str | None] = mapped_column(String(50))
    acctterminatecause: Mapped[str | None] = mapped_column(String(32))
    servicetype: Mapped[str | None] = mapped_column(String(32))
    framedprotocol: Mapped[str | None] = mapped_column(String(32))
    framedipaddress: Mapped[str | None] = mapped_column(String(64))


class RadiusSyncStatus(enum.Enum):
    pending = "pending"
    succeeded = "succeeded"
    failed = "failed"


class RadiusSyncOutbox(Base):
    """Policy-store writes that failed on the CRUD path and await replay."""

    __tablename__ = "radius_sync_outbox"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    operation: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[RadiusSyncStatus] = mapped_column(
        Enum(RadiusSyncStatus), default=RadiusSyncStatus.pending, index=True
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str | None] = mapped_column(Text)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )
