"""Payment confirmation listener."""

from __future__ import annotations

import json
import logging
from typing import Any
from uuid import UUID

import stripe
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import PaymentStatusEnum
from app.core.metrics import record_webhook_event
from app.modules.booking.repository import BookingRepository
from app.modules.scheduling.service import SchedulingService, build_scheduling_service
from app.shared.exceptions import InvalidInputException, InvalidSignatureException, NotFoundException

logger = logging.getLogger(__name__)
settings = get_settings()

SUCCESS_EVENTS = frozenset(
    {
        "checkout.session.completed",
        "checkout.session.async_payment_succeeded",
    },
)
FAILURE_EVENTS = frozenset(
    {
        "checkout.session.expired",
        "checkout.session.async_payment_failed",
        "payment_intent.payment_failed",
    },
)


class PaymentService:
    """Verify provider notifications and settle the referenced booking."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        scheduling_service: SchedulingService,
        webhook_secret: str,
        tolerance_seconds: int,
    ) -> None:
        self.booking_repository = booking_repository
        self.scheduling_service = scheduling_service
        self.webhook_secret = webhook_secret
        self.tolerance_seconds = tolerance_seconds

    def construct_event(self, raw_body: bytes, signature_header: str | None) -> dict[str, Any]:
        """Authenticate webhook payload and decode it."""
        if not signature_header:
            raise InvalidSignatureException("Missing Stripe-Signature header")

        try:
            payload = raw_body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidInputException("Webhook payload is not valid UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature_header,
                self.webhook_secret,
                tolerance=self.tolerance_seconds,
            )
        except stripe.SignatureVerificationError as exc:
            logger.warning("Rejected webhook with invalid signature: %s", exc)
            raise InvalidSignatureException("Invalid webhook signature") from exc

        try:
            event = json.loads(payload)
        except ValueError as exc:
            raise InvalidInputException("Malformed webhook payload") from exc
        if not isinstance(event, dict) or not isinstance(event.get("type"), str):
            raise InvalidInputException("Webhook event type is missing")
        return event

    @staticmethod
    def _event_object(event: dict[str, Any]) -> dict[str, Any]:
        data = event.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        return obj if isinstance(obj, dict) else {}

    @staticmethod
    def _booking_id(event_object: dict[str, Any]) -> UUID | None:
        metadata = event_object.get("metadata")
        if not isinstance(metadata, dict):
            return None
        try:
            return UUID(str(metadata.get("booking_id")))
        except ValueError:
            return None

    async def handle_notification(self, raw_body: bytes, signature_header: str | None) -> None:
        """Verify and dispatch a payment notification.

        Settlement is idempotent: a booking leaves ``pending`` at most once,
        repeated or late notifications are acknowledged without effect.
        """
        event = self.construct_event(raw_body, signature_header)
        event_type = event["type"]

        if event_type not in SUCCESS_EVENTS and event_type not in FAILURE_EVENTS:
            logger.debug("Ignoring webhook event %s", event_type)
            record_webhook_event("other", "ignored")
            return

        event_object = self._event_object(event)
        if event_type == "checkout.session.completed" and event_object.get("payment_status") == "unpaid":
            # Delayed payment methods settle through async_payment_* events.
            record_webhook_event(event_type, "deferred")
            return

        booking_id = self._booking_id(event_object)
        if booking_id is None:
            logger.warning("Webhook event %s carries no booking reference", event.get("id"))
            record_webhook_event(event_type, "unknown_booking")
            return

        if event_type in SUCCESS_EVENTS:
            outcome = await self._settle(booking_id, PaymentStatusEnum.SUCCEEDED)
        else:
            outcome = await self._settle(booking_id, PaymentStatusEnum.FAILED)
        record_webhook_event(event_type, outcome)

    async def _settle(self, booking_id: UUID, target: PaymentStatusEnum) -> str:
        booking = await self.booking_repository.transition_payment_status(
            booking_id,
            PaymentStatusEnum.PENDING,
            target,
        )
        if booking is None:
            existing = await self.booking_repository.get_booking_by_id(booking_id)
            if existing is None:
                logger.warning("Webhook references unknown booking %s", booking_id)
                return "unknown_booking"
            logger.info(
                "Booking %s already settled as %s, ignoring %s",
                booking_id,
                existing.payment_status.value,
                target.value,
            )
            return "duplicate"

        logger.info("Booking %s payment %s", booking_id, target.value)
        if target == PaymentStatusEnum.FAILED and booking.slot_id is not None:
            try:
                await self.scheduling_service.release_slot(booking.slot_id)
            except NotFoundException:
                logger.warning("Time slot %s of booking %s no longer exists", booking.slot_id, booking_id)
        return target.value


async def get_payment_service(session: AsyncSession = Depends(get_db_session)) -> PaymentService:
    """Dependency provider for payment confirmation service."""
    return PaymentService(
        booking_repository=BookingRepository(session),
        scheduling_service=build_scheduling_service(session),
        webhook_secret=settings.stripe_webhook_secret,
        tolerance_seconds=settings.stripe_webhook_tolerance_seconds,
    )
