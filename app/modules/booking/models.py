"""Booking ORM models."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, value_enum
from app.core.enums import PaymentStatusEnum


class Booking(BaseModelMixin, Base):
    """Customer reservation of one time slot."""

    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            "uq_bookings_active_slot",
            "slot_id",
            unique=True,
            postgresql_where=text("payment_status <> 'failed'"),
        ),
    )

    slot_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("time_slots.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    customer_identity: Mapped[str] = mapped_column(String(255), nullable=False)
    payment_status: Mapped[PaymentStatusEnum] = mapped_column(
        value_enum(PaymentStatusEnum, "payment_status_enum"),
        default=PaymentStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    payment_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
