"""Booking API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.modules.booking.schemas import BookingCreate, BookingCreateResponse, BookingRead
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.identity.service import require_admin

router = APIRouter(tags=["bookings"])
admin_router = APIRouter(prefix="/admin/bookings", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/bookings", response_model=BookingCreateResponse)
async def create_booking(
    payload: BookingCreate,
    service: BookingService = Depends(get_booking_service),
) -> BookingCreateResponse:
    """Book a time slot and return the checkout link."""
    return await service.create_booking(payload)


@admin_router.get("", response_model=list[BookingRead])
async def list_bookings(service: BookingService = Depends(get_booking_service)) -> list[BookingRead]:
    """List bookings, newest first."""
    bookings = await service.list_bookings()
    return [BookingRead.model_validate(booking) for booking in bookings]
