"""Initial tenant, catalog, subscriber and FreeRADIUS schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_ENUMS = {
    "tenantstatus": ["active", "trial", "suspended", "inactive"],
    "speedunit": ["kbps", "mbps"],
    "validityunit": ["hours", "days", "weeks", "months"],
    "planstatus": ["active", "inactive"],
    "nastype": ["mikrotik", "cisco", "ubiquiti", "other"],
    "nasdevicestatus": ["active", "inactive"],
    "subscriberstatus": ["active", "trial", "suspended", "expired", "disabled"],
    "notificationtype": [
        "expiry_reminder",
        "expired_notice",
        "renewal_confirmation",
        "payment_confirmation",
    ],
    "notificationstatus": ["queued", "sending", "delivered", "failed"],
    "radiussyncstatus": ["pending", "succeeded", "failed"],
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*_ENUMS[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    ]


def _attribute_table(name: str, key: str, with_priority: bool = False) -> None:
    columns = [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(key, sa.String(64), nullable=False, server_default=""),
        sa.Column("attribute", sa.String(64), nullable=False, server_default=""),
        sa.Column("op", sa.String(2), nullable=False, server_default=":="),
        sa.Column("value", sa.String(253), nullable=False, server_default=""),
    ]
    if with_priority:
        columns.append(sa.Column("priority", sa.Integer(), nullable=False, server_default="0"))
    op.create_table(
        name,
        *columns,
        sa.UniqueConstraint(
            key,
            "attribute",
            name=f"uq_{name}_{'username' if key == 'username' else 'group'}_attribute",
        ),
    )
    op.create_index(f"ix_{name}_{key}", name, [key])


def upgrade() -> None:
    conn = op.get_bind()
    for enum_name, values in _ENUMS.items():
        postgresql.ENUM(*values, name=enum_name, create_type=False).create(
            conn, checkfirst=True
        )

    op.create_table(
        "tenants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("slug", sa.String(40), nullable=False, unique=True),
        sa.Column("status", _enum("tenantstatus")),
        sa.Column("grace_period_days", sa.Integer()),
        sa.Column("currency", sa.String(3)),
        *_timestamps(),
        sa.CheckConstraint("slug NOT LIKE '%!_%' ESCAPE '!'", name="ck_tenants_slug_no_underscore"),
    )

    op.create_table(
        "plans",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "tenant_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False
        ),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("status", _enum("planstatus")),
        sa.Column("download_speed", sa.Integer(), nullable=False),
        sa.Column("upload_speed", sa.Integer(), nullable=False),
        sa.Column("speed_unit", _enum("speedunit")),
        sa.Column("fup_download_speed", sa.Integer()),
        sa.Column("fup_upload_speed", sa.Integer()),
        sa.Column("fup_speed_unit", _enum("speedunit")),
        sa.Column("data_limit_mb", sa.Integer()),
        sa.Column("burst_download_speed", sa.Integer()),
        sa.Column("burst_upload_speed", sa.Integer()),
        sa.Column("burst_threshold", sa.Integer()),
        sa.Column("burst_time", sa.Integer()),
        sa.Column("time_slot_start", sa.String(5)),
        sa.Column("time_slot_end", sa.String(5)),
        sa.Column("simultaneous_devices", sa.Integer()),
        sa.Column("priority", sa.Integer()),
        sa.Column("pool_name", sa.String(64)),
        sa.Column("validity_amount", sa.Integer()),
        sa.Column("validity_unit", _enum("validityunit")),
        sa.Column("price", sa.Numeric(12, 2)),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "name", name="uq_plans_tenant_name"),
        sa.CheckConstraint("priority BETWEEN 1 AND 8", name="ck_plans_priority_range"),
    )
    op.create_index("ix_plans_tenant_id", "plans", ["tenant_id"])

    op.create_table(
        "nas_devices",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "tenant_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False
        ),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("short_name", sa.String(64)),
        sa.Column("nas_ip", sa.String(64), nullable=False, unique=True),
        sa.Column("secret", sa.String(512), nullable=False),
        sa.Column("nas_type", _enum("nastype")),
        sa.Column("coa_port", sa.Integer()),
        sa.Column("description", sa.Text()),
        sa.Column("status", _enum("nasdevicestatus")),
        *_timestamps(),
    )
    op.create_index("ix_nas_devices_tenant_id", "nas_devices", ["tenant_id"])

    op.create_table(
        "subscribers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "tenant_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False
        ),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("phone", sa.String(40)),
        sa.Column("email", sa.String(255)),
        sa.Column("address", sa.Text()),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("radius_password", sa.String(512), nullable=False),
        sa.Column("status", _enum("subscriberstatus")),
        sa.Column("plan_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("plans.id")),
        sa.Column(
            "nas_device_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("nas_devices.id")
        ),
        sa.Column("mac_address", sa.String(17)),
        sa.Column("static_ip", sa.String(64)),
        sa.Column("balance", sa.Numeric(12, 2)),
        sa.Column("auto_renewal", sa.Boolean()),
        sa.Column("expiry_date", sa.DateTime(timezone=True)),
        sa.Column("last_renewal_date", sa.DateTime(timezone=True)),
        sa.Column("notes", sa.Text()),
        sa.Column("deleted_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "username", name="uq_subscribers_tenant_username"),
    )
    for column in ("tenant_id", "status", "plan_id", "nas_device_id", "expiry_date"):
        op.create_index(f"ix_subscribers_{column}", "subscribers", [column])

    op.create_table(
        "subscriber_notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "tenant_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tenants.id"), nullable=False
        ),
        sa.Column(
            "subscriber_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscribers.id"),
            nullable=False,
        ),
        sa.Column("notification_type", _enum("notificationtype"), nullable=False),
        sa.Column("variables", sa.JSON()),
        sa.Column("status", _enum("notificationstatus")),
        sa.Column("attempts", sa.Integer()),
        sa.Column("last_error", sa.Text()),
        sa.Column("sent_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    for column in ("tenant_id", "subscriber_id", "status"):
        op.create_index(
            f"ix_subscriber_notifications_{column}", "subscriber_notifications", [column]
        )

    _attribute_table("radcheck", "username")
    _attribute_table("radreply", "username")
    _attribute_table("radgroupcheck", "groupname")
    _attribute_table("radgroupreply", "groupname", with_priority=True)

    op.create_table(
        "radusergroup",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(64), nullable=False, server_default=""),
        sa.Column("groupname", sa.String(64), nullable=False, server_default=""),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("username", name="uq_radusergroup_username"),
    )
    op.create_index("ix_radusergroup_groupname", "radusergroup", ["groupname"])

    op.create_table(
        "nas",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("nasname", sa.String(128), nullable=False, unique=True),
        sa.Column("shortname", sa.String(32), nullable=False),
        sa.Column("type", sa.String(30), nullable=False, server_default="other"),
        sa.Column("ports", sa.Integer()),
        sa.Column("secret", sa.String(60), nullable=False, server_default="secret"),
        sa.Column("server", sa.String(64)),
        sa.Column("community", sa.String(50)),
        sa.Column("description", sa.String(200), server_default="RADIUS Client"),
    )

    op.create_table(
        "radacct",
        sa.Column("radacctid", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("acctsessionid", sa.String(64), nullable=False),
        sa.Column("acctuniqueid", sa.String(32), nullable=False, unique=True),
        sa.Column("username", sa.String(64)),
        sa.Column("groupname", sa.String(64)),
        sa.Column("realm", sa.String(64)),
        sa.Column("nasipaddress", sa.String(64), nullable=False),
        sa.Column("nasportid", sa.String(32)),
        sa.Column("nasporttype", sa.String(32)),
        sa.Column("acctstarttime", sa.DateTime(timezone=True)),
        sa.Column("acctupdatetime", sa.DateTime(timezone=True)),
        sa.Column("acctstoptime", sa.DateTime(timezone=True)),
        sa.Column("acctinterval", sa.Integer()),
        sa.Column("acctsessiontime", sa.BigInteger()),
        sa.Column("acctauthentic", sa.String(32)),
        sa.Column("connectinfo_start", sa.String(50)),
        sa.Column("connectinfo_stop", sa.String(50)),
        sa.Column("acctinputoctets", sa.BigInteger()),
        sa.Column("acctoutputoctets", sa.BigInteger()),
        sa.Column("calledstationid", sa.String(50)),
        sa.Column("callingstationid", sa.String(50)),
        sa.Column("acctterminatecause", sa.String(32)),
        sa.Column("servicetype", sa.String(32)),
        sa.Column("framedprotocol", sa.String(32)),
        sa.Column("framedipaddress", sa.String(64)),
    )
    for column in ("acctsessionid", "username", "nasipaddress", "acctstarttime", "acctstoptime"):
        op.create_index(f"ix_radacct_{column}", "radacct", [column])
    op.create_index("ix_radacct_open_sessions", "radacct", ["username", "acctstoptime"])

    op.create_table(
        "radius_sync_outbox",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("operation", sa.String(64), nullable=False),
        sa.Column("payload", sa.JSON()),
        sa.Column("status", _enum("radiussyncstatus")),
        sa.Column("attempts", sa.Integer()),
        sa.Column("last_error", sa.Text()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_radius_sync_outbox_operation", "radius_sync_outbox", ["operation"])
    op.create_index("ix_radius_sync_outbox_status", "radius_sync_outbox", ["status"])


def downgrade() -> None:
    for table in (
        "radius_sync_outbox",
        "radacct",
        "nas",
        "radusergroup",
        "radgroupreply",
        "radgroupcheck",
        "radreply",
        "radcheck",
        "subscriber_notifications",
        "subscribers",
        "nas_devices",
        "plans",
        "tenants",
    ):
        op.drop_table(table)
    conn = op.get_bind()
    for enum_name in _ENUMS:
        postgresql.ENUM(name=enum_name).drop(conn, checkfirst=True)
