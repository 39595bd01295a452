"""Create booking table with the active-slot unique index

Revision ID: 001_create_booking
Revises:
Create Date: 2025-05-20 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_create_booking"
down_revision = None
branch_labels = None
depends_on = None

_ACTIVE = "status IN ('booked', 'checked_in')"


def upgrade() -> None:
    op.create_table(
        "booking",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("court", sa.Integer(), nullable=False),
        sa.Column("hour", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="booked"),
        sa.Column("note", sa.String(), nullable=False, server_default=""),
        sa.Column("canceled_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("status IN ('booked', 'checked_in', 'canceled')", name="ck_booking_status"),
    )
    op.create_index("ix_booking_user_id", "booking", ["user_id"])
    op.create_index("ix_booking_slot_date", "booking", ["slot_date"])
    op.create_index("ix_booking_user_date", "booking", ["user_id", "slot_date"])

    # One active booking per (date, court, hour); canceled rows do not occupy the slot
    op.create_index(
        "uq_booking_active_slot",
        "booking",
        ["slot_date", "court", "hour"],
        unique=True,
        postgresql_where=sa.text(_ACTIVE),
        sqlite_where=sa.text(_ACTIVE),
    )


def downgrade() -> None:
    op.drop_index("uq_booking_active_slot", table_name="booking")
    op.drop_index("ix_booking_user_date", table_name="booking")
    op.drop_index("ix_booking_slot_date", table_name="booking")
    op.drop_index("ix_booking_user_id", table_name="booking")
    op.drop_table("booking")
