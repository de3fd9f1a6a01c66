"""Booking option schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import BookingOptionNameEnum


class BookingOptionWrite(BaseModel):
    """Create or update a booking option.

    ``id`` is optional: when it is omitted the option is matched by ``name``.
    """

    id: UUID | None = None
    name: BookingOptionNameEnum
    value: str = Field(min_length=1, max_length=255)


class BookingOptionRead(BaseModel):
    """Booking option response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: BookingOptionNameEnum
    value: str
    created_at: datetime
    updated_at: datetime
