"""Scheduling schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.core.enums import SlotStatusEnum


class SlotWrite(BaseModel):
    """Create or update time slot request."""

    start_time: datetime
    end_time: datetime


class SlotPublicRead(BaseModel):
    """Available slot as shown to customers."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    start_time: datetime
    end_time: datetime


class SlotRead(SlotPublicRead):
    """Time slot response schema with availability state."""

    status: SlotStatusEnum
    created_at: datetime
