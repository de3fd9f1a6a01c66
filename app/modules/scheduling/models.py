"""Scheduling ORM models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, value_enum
from app.core.enums import SlotStatusEnum


class TimeSlot(BaseModelMixin, Base):
    """Bookable massage-chair interval created by an admin."""

    __tablename__ = "time_slots"
    __table_args__ = (CheckConstraint("end_time > start_time", name="interval_order"),)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[SlotStatusEnum] = mapped_column(
        value_enum(SlotStatusEnum, "slot_status_enum"),
        default=SlotStatusEnum.AVAILABLE,
        nullable=False,
        index=True,
    )
