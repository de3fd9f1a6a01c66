"""Booking options admin router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.modules.identity.service import require_admin
from app.modules.options.schemas import BookingOptionRead, BookingOptionWrite
from app.modules.options.service import OptionsService, get_options_service

router = APIRouter(
    prefix="/admin/booking-options",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=list[BookingOptionRead])
async def list_options(service: OptionsService = Depends(get_options_service)) -> list[BookingOptionRead]:
    """List booking options ordered by name."""
    options = await service.list_options()
    return [BookingOptionRead.model_validate(option) for option in options]


@router.put("", response_model=BookingOptionRead)
async def upsert_option(
    payload: BookingOptionWrite,
    service: OptionsService = Depends(get_options_service),
) -> BookingOptionRead:
    """Create or update a booking option."""
    option = await service.upsert_option(payload)
    return BookingOptionRead.model_validate(option)
