"""create users, fleet and incident tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


incident_status = sa.Enum("pending", "responding", "resolved", "cancelled", name="incident_status", create_type=False)
vehicle_status = sa.Enum(
    "available", "assigned", "responding", "maintenance", "out_of_service", name="vehicle_status", create_type=False
)
alert_type = sa.Enum(
    "medical", "fire", "accident", "crime", "natural_disaster", "other", name="alert_type", create_type=False
)
alert_severity = sa.Enum("low", "medium", "high", "critical", name="alert_severity", create_type=False)

_ENUMS = (incident_status, vehicle_status, alert_type, alert_severity)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _incident_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("status", incident_status, nullable=False),
        sa.Column(
            "assigned_vehicle_id", sa.Integer(), sa.ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column(
            "assigned_responder_id",
            sa.Integer(),
            sa.ForeignKey("responders.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    ]


def _index_incident_table(table: str, occurred_at: str) -> None:
    op.create_index(op.f(f"ix_{table}_user_id"), table, ["user_id"], unique=False)
    op.create_index(op.f(f"ix_{table}_status"), table, ["status"], unique=False)
    op.create_index(op.f(f"ix_{table}_assigned_vehicle_id"), table, ["assigned_vehicle_id"], unique=False)
    op.create_index(op.f(f"ix_{table}_{occurred_at}"), table, [occurred_at], unique=False)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in _ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("first_name", sa.String(length=128), nullable=True),
        sa.Column("last_name", sa.String(length=128), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("license_plate", sa.String(length=32), nullable=False),
        sa.Column("vehicle_type", sa.String(length=64), nullable=False),
        sa.Column("model", sa.String(length=128), nullable=True),
        sa.Column("status", vehicle_status, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("license_plate", name="uq_vehicles_license_plate"),
    )

    op.create_table(
        "responders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "alerts",
        *_incident_columns(),
        sa.Column("alert_type", alert_type, nullable=False),
        sa.Column("severity", alert_severity, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=512), nullable=False),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("reported_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_incident_table("alerts", "reported_at")

    op.create_table(
        "crash_events",
        *_incident_columns(),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("impact_force", sa.Float(), nullable=True),
        sa.Column("device_battery", sa.Integer(), nullable=True),
        sa.Column("network_type", sa.String(length=32), nullable=True),
        sa.Column("triggered_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_incident_table("crash_events", "triggered_at")

    op.create_table(
        "sos_requests",
        *_incident_columns(),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("triggered_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_incident_table("sos_requests", "triggered_at")


def downgrade() -> None:
    for table, occurred_at in (("sos_requests", "triggered_at"), ("crash_events", "triggered_at"), ("alerts", "reported_at")):
        for column in (occurred_at, "assigned_vehicle_id", "status", "user_id"):
            op.drop_index(op.f(f"ix_{table}_{column}"), table_name=table)
        op.drop_table(table)
    op.drop_table("responders")
    op.drop_table("vehicles")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in reversed(_ENUMS):
        enum_type.drop(bind, checkfirst=True)
