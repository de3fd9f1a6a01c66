"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.core.enums import PaymentStatusEnum
from app.modules.scheduling.schemas import SlotRead


class BookingCreate(BaseModel):
    """Create booking request."""

    slot_id: UUID = Field(validation_alias=AliasChoices("slot_id", "time_slot_id"))
    customer_identity: str = Field(
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("customer_identity", "email"),
    )

    @field_validator("customer_identity")
    @classmethod
    def strip_identity(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("customer_identity must not be blank")
        return value


class BookingCreateResponse(BaseModel):
    """Newly created booking with the checkout link."""

    id: UUID
    time_slot: SlotRead
    payment_status: PaymentStatusEnum
    entry_url: str


class BookingRead(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    slot_id: UUID | None
    customer_identity: str
    payment_status: PaymentStatusEnum
    payment_session_id: str | None
    created_at: datetime
    updated_at: datetime
