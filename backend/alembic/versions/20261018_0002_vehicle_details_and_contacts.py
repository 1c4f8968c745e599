"""vehicle telemetry columns and emergency contacts

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 12:00:00.000000
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_0002"
down_revision: Union[str, None] = "20261018_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_VEHICLE_COLUMNS = (
    sa.Column("year", sa.Integer(), nullable=True),
    sa.Column("current_location", sa.String(length=512), nullable=True),
    sa.Column("current_latitude", sa.Float(), nullable=True),
    sa.Column("current_longitude", sa.Float(), nullable=True),
    sa.Column("fuel_level", sa.Float(), nullable=True),
    sa.Column("odometer_reading", sa.Integer(), nullable=True),
    sa.Column("equipment_list", sa.JSON(), server_default=sa.text("'[]'"), nullable=False),
)


def upgrade() -> None:
    for column in _VEHICLE_COLUMNS:
        op.add_column("vehicles", column)

    op.create_table(
        "emergency_contacts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("relationship", sa.String(length=64), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=False),
        sa.Column("alternate_phone", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_primary", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_emergency_contacts_user_id"), "emergency_contacts", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_emergency_contacts_user_id"), table_name="emergency_contacts")
    op.drop_table("emergency_contacts")
    for column in reversed(_VEHICLE_COLUMNS):
        op.drop_column("vehicles", column.name)
