"""Booking option ORM models."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, value_enum
from app.core.enums import BookingOptionNameEnum


class BookingOption(BaseModelMixin, Base):
    """Named configuration value managed by administrators."""

    __tablename__ = "booking_options"

    name: Mapped[BookingOptionNameEnum] = mapped_column(
        value_enum(BookingOptionNameEnum, "booking_option_name_enum"),
        nullable=False,
        unique=True,
    )
    value: Mapped[str] = mapped_column(String(255), nullable=False)
