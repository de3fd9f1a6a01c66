"""Scheduling API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.modules.identity.service import require_admin
from app.modules.scheduling.schemas import SlotPublicRead, SlotRead, SlotWrite
from app.modules.scheduling.service import SchedulingService, get_scheduling_service

router = APIRouter(tags=["timeslots"])
admin_router = APIRouter(
    prefix="/admin/timeslots",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


@router.get("/timeslots", response_model=list[SlotPublicRead])
async def list_available_slots(
    day: date | None = Query(default=None, alias="date"),
    service: SchedulingService = Depends(get_scheduling_service),
) -> list[SlotPublicRead]:
    """List bookable slots, soonest first."""
    return await service.list_available_slots(day)


@admin_router.get("", response_model=list[SlotRead])
async def list_slots(service: SchedulingService = Depends(get_scheduling_service)) -> list[SlotRead]:
    """List all slots with their availability."""
    slots = await service.list_slots()
    return [SlotRead.model_validate(slot) for slot in slots]


@admin_router.post("", response_model=SlotRead, status_code=status.HTTP_201_CREATED)
async def create_slot(
    payload: SlotWrite,
    service: SchedulingService = Depends(get_scheduling_service),
) -> SlotRead:
    """Create time slot."""
    slot = await service.create_slot(payload)
    return SlotRead.model_validate(slot)


@admin_router.put("/{slot_id}", response_model=SlotRead)
async def update_slot(
    slot_id: UUID,
    payload: SlotWrite,
    service: SchedulingService = Depends(get_scheduling_service),
) -> SlotRead:
    """Reschedule time slot."""
    slot = await service.update_slot(slot_id, payload)
    return SlotRead.model_validate(slot)


@admin_router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
) -> Response:
    """Delete an unbooked time slot."""
    await service.delete_slot(slot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
