"""Booking repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import commit_session, rollback_session
from app.core.enums import PaymentStatusEnum
from app.modules.booking.models import Booking


class BookingRepository:
    """DB operations for booking domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_booking(self, slot_id: UUID, customer_identity: str) -> Booking:
        booking = Booking(
            slot_id=slot_id,
            customer_identity=customer_identity,
            payment_status=PaymentStatusEnum.PENDING,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        return await self.session.get(Booking, booking_id)

    async def set_payment_session(self, booking_id: UUID, payment_session_id: str) -> Booking | None:
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .values(payment_session_id=payment_session_id)
            .returning(Booking)
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def transition_payment_status(
        self,
        booking_id: UUID,
        from_status: PaymentStatusEnum,
        to_status: PaymentStatusEnum,
    ) -> Booking | None:
        """Move payment status only if it still equals ``from_status``."""
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.payment_status == from_status)
            .values(payment_status=to_status)
            .returning(Booking)
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def list_bookings(self) -> list[Booking]:
        stmt = select(Booking).order_by(Booking.created_at.desc(), Booking.id.desc())
        return list((await self.session.scalars(stmt)).all())

    async def commit(self) -> None:
        await commit_session(self.session)

    async def rollback(self) -> None:
        await rollback_session(self.session)
