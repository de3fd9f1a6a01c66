"""Booking business logic layer."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import PaymentStatusEnum
from app.core.metrics import record_booking_outcome
from app.modules.booking.models import Booking
from app.modules.booking.repository import BookingRepository
from app.modules.booking.schemas import BookingCreate, BookingCreateResponse
from app.modules.options.repository import OptionsRepository
from app.modules.options.service import OptionsService
from app.modules.payments.gateway import CheckoutSession, PaymentGateway, get_payment_gateway
from app.modules.scheduling.schemas import SlotRead
from app.modules.scheduling.service import SchedulingService, build_scheduling_service
from app.shared.exceptions import (
    PaymentProviderException,
    PaymentProviderTimeoutException,
    SlotNotFoundException,
    SlotUnavailableException,
)

logger = logging.getLogger(__name__)
settings = get_settings()

_background_tasks: set[asyncio.Future] = set()


class BookingService:
    """Booking workflow: claim a slot, record the booking, open checkout."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        scheduling_service: SchedulingService,
        options_service: OptionsService,
        payment_gateway: PaymentGateway,
    ) -> None:
        self.booking_repository = booking_repository
        self.scheduling_service = scheduling_service
        self.options_service = options_service
        self.payment_gateway = payment_gateway

    @staticmethod
    def _checkout_urls(booking_id: UUID) -> tuple[str, str]:
        base_url = settings.public_base_url
        success_url = (
            f"{base_url}{settings.checkout_success_path}"
            f"?booking_id={booking_id}&session_id={{CHECKOUT_SESSION_ID}}"
        )
        cancel_url = f"{base_url}{settings.checkout_cancel_path}?booking_id={booking_id}"
        return success_url, cancel_url

    async def _open_checkout(self, booking_id: UUID, slot_id: UUID) -> CheckoutSession:
        price = await self.options_service.get_checkout_price()
        success_url, cancel_url = self._checkout_urls(booking_id)
        request = asyncio.ensure_future(
            self.payment_gateway.create_checkout_session(
                amount_minor=price.amount_minor,
                currency=price.currency,
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={"booking_id": str(booking_id), "slot_id": str(slot_id)},
            ),
        )
        try:
            # Shielded: the SDK call runs in a worker thread and cannot be cancelled.
            return await asyncio.wait_for(asyncio.shield(request), timeout=settings.payment_timeout_seconds)
        except asyncio.TimeoutError:
            request.add_done_callback(partial(self._on_late_checkout, booking_id))
            raise

    def _on_late_checkout(self, booking_id: UUID, request: asyncio.Future) -> None:
        """Expire a session that the provider opened after the booking was abandoned."""
        if request.cancelled() or request.exception() is not None:
            return
        session = request.result()
        logger.warning(
            "Checkout session %s for abandoned booking %s opened after timeout, expiring it",
            session.session_id,
            booking_id,
        )
        task = asyncio.ensure_future(self._expire_checkout(session.session_id))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    async def _expire_checkout(self, session_id: str) -> None:
        try:
            await self.payment_gateway.expire_checkout_session(session_id)
        except PaymentProviderException:
            logger.error("Orphaned checkout session %s could not be expired", session_id)

    async def _abandon_booking(self, booking_id: UUID, slot_id: UUID) -> None:
        """Mark booking failed and put its slot back on sale."""
        await self.booking_repository.transition_payment_status(
            booking_id,
            PaymentStatusEnum.PENDING,
            PaymentStatusEnum.FAILED,
        )
        await self.scheduling_service.release_slot(slot_id)
        await self.booking_repository.commit()

    async def create_booking(self, payload: BookingCreate) -> BookingCreateResponse:
        """Claim slot, record a pending booking and open a checkout session."""
        try:
            slot = await self.scheduling_service.claim_slot(payload.slot_id)
        except SlotNotFoundException:
            record_booking_outcome("not_found")
            raise
        except SlotUnavailableException:
            record_booking_outcome("conflict")
            raise

        booking = await self.booking_repository.create_booking(slot.id, payload.customer_identity)
        # Loaded rows expire on rollback; failure paths only use these ids.
        booking_id, slot_id = booking.id, slot.id
        # Claim must be durable before talking to the provider.
        await self.booking_repository.commit()
        logger.info("Booking %s created for time slot %s", booking_id, slot_id)

        try:
            checkout = await self._open_checkout(booking_id, slot_id)
        except asyncio.TimeoutError as exc:
            logger.error("Payment provider timed out for booking %s", booking_id)
            await self._abandon_booking(booking_id, slot_id)
            record_booking_outcome("payment_timeout")
            raise PaymentProviderTimeoutException("Payment provider did not respond in time") from exc
        except PaymentProviderException:
            await self._abandon_booking(booking_id, slot_id)
            record_booking_outcome("payment_failed")
            raise

        try:
            updated = await self.booking_repository.set_payment_session(booking_id, checkout.session_id)
            await self.booking_repository.commit()
        except SQLAlchemyError as exc:
            logger.exception("Could not store payment session for booking %s", booking_id)
            await self.booking_repository.rollback()
            await self._abandon_booking(booking_id, slot_id)
            await self._expire_checkout(checkout.session_id)
            record_booking_outcome("payment_failed")
            raise PaymentProviderException("Could not record payment session") from exc

        booking = updated or booking
        record_booking_outcome("created")
        return BookingCreateResponse(
            id=booking.id,
            time_slot=SlotRead.model_validate(slot),
            payment_status=booking.payment_status,
            entry_url=checkout.entry_url,
        )

    async def list_bookings(self) -> list[Booking]:
        """List all bookings, newest first."""
        return await self.booking_repository.list_bookings()


async def get_booking_service(
    session: AsyncSession = Depends(get_db_session),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
) -> BookingService:
    """Dependency provider for booking service."""
    return BookingService(
        booking_repository=BookingRepository(session),
        scheduling_service=build_scheduling_service(session),
        options_service=OptionsService(OptionsRepository(session)),
        payment_gateway=payment_gateway,
    )
