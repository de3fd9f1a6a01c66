"""Initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 10:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum("customer", "admin", name="role_enum", native_enum=False)
slot_status_enum = sa.Enum("available", "booked", name="slot_status_enum", native_enum=False)
payment_status_enum = sa.Enum("pending", "succeeded", "failed", name="payment_status_enum", native_enum=False)
booking_option_name_enum = sa.Enum(
    "price",
    "duration_minutes",
    "currency",
    "timezone",
    "max_bookings_per_day",
    "booking_window_days",
    name="booking_option_name_enum",
    native_enum=False,
)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", role_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "time_slots",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", slot_status_enum, nullable=False),
        sa.CheckConstraint("end_time > start_time", name="ck_time_slots_interval_order"),
    )
    op.create_index("ix_time_slots_start_time", "time_slots", ["start_time"], unique=False)
    op.create_index("ix_time_slots_status", "time_slots", ["status"], unique=False)

    op.create_table(
        "bookings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("slot_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("customer_identity", sa.String(length=255), nullable=False),
        sa.Column("payment_status", payment_status_enum, nullable=False),
        sa.Column("payment_session_id", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["slot_id"], ["time_slots.id"], name="fk_bookings_slot_id_time_slots", ondelete="SET NULL"),
        sa.UniqueConstraint("payment_session_id", name="uq_bookings_payment_session_id"),
    )
    op.create_index("ix_bookings_slot_id", "bookings", ["slot_id"], unique=False)
    op.create_index("ix_bookings_payment_status", "bookings", ["payment_status"], unique=False)
    op.create_index(
        "uq_bookings_active_slot",
        "bookings",
        ["slot_id"],
        unique=True,
        postgresql_where=sa.text("payment_status <> 'failed'"),
    )

    op.create_table(
        "booking_options",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", booking_option_name_enum, nullable=False),
        sa.Column("value", sa.String(length=255), nullable=False),
        sa.UniqueConstraint("name", name="uq_booking_options_name"),
    )


def downgrade() -> None:
    op.drop_table("booking_options")

    op.drop_index("uq_bookings_active_slot", table_name="bookings")
    op.drop_index("ix_bookings_payment_status", table_name="bookings")
    op.drop_index("ix_bookings_slot_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_time_slots_status", table_name="time_slots")
    op.drop_index("ix_time_slots_start_time", table_name="time_slots")
    op.drop_table("time_slots")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
