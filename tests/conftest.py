import os
import sqlite3
import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Register UUID adapter for SQLite - store as string
sqlite3.register_adapter(uuid.UUID, lambda u: str(u))


# Monkey-patch SQLAlchemy's UUID type for SQLite compatibility
# This must happen before any models are imported
from sqlalchemy.sql import sqltypes

_original_uuid_bind_processor = sqltypes.Uuid.bind_processor
_original_uuid_result_processor = sqltypes.Uuid.result_processor


def _sqlite_uuid_bind_processor(self, dialect):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return str(value)
                return str(uuid.UUID(value)) if value else None
            return None
        return process
    return _original_uuid_bind_processor(self, dialect)


def _sqlite_uuid_result_processor(self, dialect, coltype):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return value
                return uuid.UUID(value) if value else None
            return None
        return process
    return _original_uuid_result_processor(self, dialect, coltype)


setattr(sqltypes.Uuid, "bind_processor", _sqlite_uuid_bind_processor)
setattr(sqltypes.Uuid, "result_processor", _sqlite_uuid_result_processor)

from app.db import Base
from app.models.catalog import NasDevice, NasType, Plan, SpeedUnit, ValidityUnit
from app.models.radius import RadAcct
from app.models.subscriber import Subscriber, SubscriberStatus
from app.models.tenant import Tenant
from app.services.credential_crypto import encrypt_credential


@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        # Use PostgreSQL for tests (recommended)
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={
                "check_same_thread": False,
            },
            poolclass=StaticPool,
        )

        # pysqlite needs explicit BEGIN handling for SAVEPOINT support.
        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_sqlite(conn):
            conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)

    return engine


@pytest.fixture()
def db_session(engine):
    """Session whose commits and rollbacks stay inside one outer transaction."""
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def _no_encryption_key(monkeypatch):
    monkeypatch.delenv("CREDENTIAL_ENCRYPTION_KEY", raising=False)


@pytest.fixture()
def tenant(db_session):
    tenant = Tenant(name="Acme Broadband", slug="acme")
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture()
def other_tenant(db_session):
    tenant = Tenant(name="Beta Fiber", slug="beta")
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture()
def plan(db_session, tenant):
    plan = Plan(
        tenant_id=tenant.id,
        name="Home 20",
        download_speed=20,
        upload_speed=10,
        speed_unit=SpeedUnit.mbps,
        validity_amount=30,
        validity_unit=ValidityUnit.days,
        price=Decimal("499.00"),
        simultaneous_devices=1,
        priority=8,
    )
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture()
def nas_device(db_session, tenant):
    device = NasDevice(
        tenant_id=tenant.id,
        name="Core Router",
        short_name="core-1",
        nas_ip="10.0.0.1",
        secret=encrypt_credential("nas-secret"),
        nas_type=NasType.mikrotik,
    )
    db_session.add(device)
    db_session.commit()
    db_session.refresh(device)
    return device


@pytest.fixture()
def make_subscriber(db_session):
    def _make(tenant, username="alice", plan=None, nas_device=None, **overrides):
        values = {
            "tenant_id": tenant.id,
            "name": username.title(),
            "username": username,
            "radius_password": encrypt_credential("s3cret"),
            "status": SubscriberStatus.active,
            "plan_id": plan.id if plan else None,
            "nas_device_id": nas_device.id if nas_device else None,
            "balance": Decimal("0.00"),
            "auto_renewal": False,
            "expiry_date": datetime.now(UTC) + timedelta(days=30),
        }
        values.update(overrides)
        subscriber = Subscriber(**values)
        db_session.add(subscriber)
        db_session.commit()
        db_session.refresh(subscriber)
        return subscriber

    return _make


@pytest.fixture()
def subscriber(make_subscriber, tenant, plan, nas_device):
    return make_subscriber(tenant, "alice", plan=plan, nas_device=nas_device)


@pytest.fixture()
def make_session(db_session):
    def _make(radius_username, nas_ip="10.0.0.1", started_minutes_ago=5, updated_minutes_ago=1, **overrides):
        now = datetime.now(UTC)
        values = {
            "acctsessionid": uuid.uuid4().hex[:16],
            "acctuniqueid": uuid.uuid4().hex,
            "username": radius_username,
            "nasipaddress": nas_ip,
            "acctstarttime": now - timedelta(minutes=started_minutes_ago),
            "acctupdatetime": (
                now - timedelta(minutes=updated_minutes_ago)
                if updated_minutes_ago is not None
                else None
            ),
            "framedipaddress": "100.64.0.10",
        }
        values.update(overrides)
        session = RadAcct(**values)
        db_session.add(session)
        db_session.commit()
        db_session.refresh(session)
        return session

    return _make
