"""Scheduling business logic layer."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from functools import partial
from uuid import UUID

from fastapi import Depends
from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import CacheBackend, NoopCacheBackend, get_cache_backend
from app.core.config import get_settings
from app.core.database import AfterCommitCallback, get_db_session, run_after_commit
from app.modules.scheduling.models import TimeSlot
from app.modules.scheduling.repository import SchedulingRepository
from app.modules.scheduling.schemas import SlotPublicRead, SlotWrite
from app.shared.exceptions import (
    ConflictException,
    InvalidInputException,
    NotFoundException,
    SlotNotFoundException,
    SlotUnavailableException,
)
from app.shared.utils import ensure_utc, local_day_bounds

logger = logging.getLogger(__name__)
settings = get_settings()

AVAILABLE_SLOTS_CACHE_KEY = "timeslots:available:v1"
_public_slots_adapter = TypeAdapter(list[SlotPublicRead])


class SchedulingService:
    """Time-slot registry: availability state and the claim/release transitions."""

    def __init__(
        self,
        repository: SchedulingRepository,
        cache: CacheBackend | None = None,
        after_commit: Callable[[AfterCommitCallback], None] | None = None,
    ) -> None:
        self.repository = repository
        self.cache = cache or NoopCacheBackend()
        self.after_commit = after_commit

    async def _drop_available_cache(self) -> None:
        await self.cache.delete(AVAILABLE_SLOTS_CACHE_KEY)

    async def _invalidate_available_cache(self) -> None:
        """Drop the cached listing now and again once the change is committed.

        A listing read between the write and its commit still sees the old
        rows and may cache them; the second delete discards that entry.
        """
        await self._drop_available_cache()
        if self.after_commit is not None:
            self.after_commit(self._drop_available_cache)

    @staticmethod
    def _validated_interval(payload: SlotWrite):
        start_time = ensure_utc(payload.start_time)
        end_time = ensure_utc(payload.end_time)
        if end_time <= start_time:
            raise InvalidInputException("Slot end_time must be after start_time")
        return start_time, end_time

    async def list_available_slots(self, day: date | None = None) -> list[SlotPublicRead]:
        """List available slots ordered by start, optionally for one local calendar day."""
        if day is not None:
            starts_from, starts_before = local_day_bounds(day, settings.slot_timezone)
            slots = await self.repository.list_available_slots(starts_from, starts_before)
            return [SlotPublicRead.model_validate(slot) for slot in slots]

        cached = await self.cache.get(AVAILABLE_SLOTS_CACHE_KEY)
        if cached is not None:
            return _public_slots_adapter.validate_json(cached)

        slots = await self.repository.list_available_slots()
        result = [SlotPublicRead.model_validate(slot) for slot in slots]
        await self.cache.set(
            AVAILABLE_SLOTS_CACHE_KEY,
            _public_slots_adapter.dump_json(result).decode("utf-8"),
            ttl_seconds=settings.timeslot_cache_ttl_seconds,
        )
        return result

    async def list_slots(self) -> list[TimeSlot]:
        """List every slot regardless of state (admin view)."""
        return await self.repository.list_slots()

    async def create_slot(self, payload: SlotWrite) -> TimeSlot:
        """Create an available slot."""
        start_time, end_time = self._validated_interval(payload)
        slot = await self.repository.create_slot(start_time, end_time)
        await self._invalidate_available_cache()
        logger.info("Time slot %s created for %s", slot.id, start_time.isoformat())
        return slot

    async def update_slot(self, slot_id: UUID, payload: SlotWrite) -> TimeSlot:
        """Move a slot in time without touching its availability."""
        start_time, end_time = self._validated_interval(payload)
        slot = await self.repository.update_slot_times(slot_id, start_time, end_time)
        if slot is None:
            raise NotFoundException("Time slot not found")
        await self._invalidate_available_cache()
        return slot

    async def delete_slot(self, slot_id: UUID) -> None:
        """Delete a slot; booked slots are protected."""
        if await self.repository.delete_available_slot(slot_id):
            await self._invalidate_available_cache()
            logger.info("Time slot %s deleted", slot_id)
            return

        if await self.repository.get_slot_by_id(slot_id) is None:
            raise NotFoundException("Time slot not found")
        raise ConflictException("Cannot delete a booked time slot")

    async def claim_slot(self, slot_id: UUID) -> TimeSlot:
        """Atomically move slot from AVAILABLE to BOOKED."""
        slot = await self.repository.claim_slot(slot_id)
        if slot is None:
            if await self.repository.get_slot_by_id(slot_id) is None:
                raise SlotNotFoundException("Time slot not found")
            logger.info("Claim rejected, time slot %s is already booked", slot_id)
            raise SlotUnavailableException("Time slot is already booked")

        await self._invalidate_available_cache()
        return slot

    async def release_slot(self, slot_id: UUID) -> TimeSlot:
        """Return slot to AVAILABLE; releasing an available slot is a no-op."""
        slot = await self.repository.release_slot(slot_id)
        if slot is None:
            raise NotFoundException("Time slot not found")
        await self._invalidate_available_cache()
        logger.info("Time slot %s released", slot_id)
        return slot


def build_scheduling_service(session: AsyncSession) -> SchedulingService:
    """Wire the registry against a DB session and the shared cache."""
    return SchedulingService(
        SchedulingRepository(session),
        cache=get_cache_backend(),
        after_commit=partial(run_after_commit, session),
    )


async def get_scheduling_service(session: AsyncSession = Depends(get_db_session)) -> SchedulingService:
    """Dependency provider for scheduling service."""
    return build_scheduling_service(session)
