"""Scheduling repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import SlotStatusEnum
from app.modules.scheduling.models import TimeSlot


class SchedulingRepository:
    """DB access for the time-slot registry.

    State transitions are single conditional statements so that PostgreSQL row
    locking, not application code, decides which of several concurrent
    requests wins.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_slot(self, start_time: datetime, end_time: datetime) -> TimeSlot:
        slot = TimeSlot(start_time=start_time, end_time=end_time, status=SlotStatusEnum.AVAILABLE)
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def get_slot_by_id(self, slot_id: UUID) -> TimeSlot | None:
        stmt = select(TimeSlot).where(TimeSlot.id == slot_id)
        return await self.session.scalar(stmt)

    async def list_available_slots(
        self,
        starts_from: datetime | None = None,
        starts_before: datetime | None = None,
    ) -> list[TimeSlot]:
        stmt: Select[tuple[TimeSlot]] = select(TimeSlot).where(TimeSlot.status == SlotStatusEnum.AVAILABLE)
        if starts_from is not None:
            stmt = stmt.where(TimeSlot.start_time >= starts_from)
        if starts_before is not None:
            stmt = stmt.where(TimeSlot.start_time < starts_before)
        stmt = stmt.order_by(TimeSlot.start_time.asc(), TimeSlot.id.asc())
        return list((await self.session.scalars(stmt)).all())

    async def list_slots(self) -> list[TimeSlot]:
        stmt = select(TimeSlot).order_by(TimeSlot.start_time.asc(), TimeSlot.id.asc())
        return list((await self.session.scalars(stmt)).all())

    async def update_slot_times(self, slot_id: UUID, start_time: datetime, end_time: datetime) -> TimeSlot | None:
        stmt = (
            update(TimeSlot)
            .where(TimeSlot.id == slot_id)
            .values(start_time=start_time, end_time=end_time)
            .returning(TimeSlot)
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def claim_slot(self, slot_id: UUID) -> TimeSlot | None:
        """Move slot AVAILABLE -> BOOKED; return None if the precondition failed."""
        stmt = (
            update(TimeSlot)
            .where(TimeSlot.id == slot_id, TimeSlot.status == SlotStatusEnum.AVAILABLE)
            .values(status=SlotStatusEnum.BOOKED)
            .returning(TimeSlot)
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def release_slot(self, slot_id: UUID) -> TimeSlot | None:
        """Force slot to AVAILABLE; return None if it does not exist."""
        stmt = (
            update(TimeSlot)
            .where(TimeSlot.id == slot_id)
            .values(status=SlotStatusEnum.AVAILABLE)
            .returning(TimeSlot)
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def delete_available_slot(self, slot_id: UUID) -> bool:
        stmt = (
            delete(TimeSlot)
            .where(TimeSlot.id == slot_id, TimeSlot.status == SlotStatusEnum.AVAILABLE)
            .returning(TimeSlot.id)
        )
        deleted_id = await self.session.scalar(stmt)
        return deleted_id is not None
