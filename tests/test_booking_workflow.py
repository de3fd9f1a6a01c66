from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from uuid import uuid4

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

import app.modules.booking.service as booking_service_module
from app.core.enums import BookingOptionNameEnum, PaymentStatusEnum, SlotStatusEnum
from app.modules.booking.schemas import BookingCreate
from app.modules.scheduling.service import AVAILABLE_SLOTS_CACHE_KEY
from app.shared.exceptions import (
    PaymentProviderException,
    PaymentProviderTimeoutException,
    SlotNotFoundException,
    SlotUnavailableException,
)

SLOT_START = datetime(2025, 1, 2, 9, 0, tzinfo=UTC)
SLOT_END = datetime(2025, 1, 2, 9, 30, tzinfo=UTC)


@pytest.fixture
def slot(scheduling_repository):
    return scheduling_repository.add_slot(SLOT_START, SLOT_END)


@pytest.mark.asyncio
async def test_create_booking_claims_slot_and_opens_checkout(
    booking_service,
    booking_repository,
    payment_gateway,
    slot,
) -> None:
    response = await booking_service.create_booking(
        BookingCreate(slot_id=slot.id, customer_identity="a@example.com"),
    )

    assert response.payment_status == PaymentStatusEnum.PENDING
    assert response.time_slot.id == slot.id
    assert response.time_slot.status == SlotStatusEnum.BOOKED
    assert response.entry_url.startswith("https://checkout.stripe.test/")
    assert slot.status == SlotStatusEnum.BOOKED

    booking = booking_repository.bookings[response.id]
    assert booking.customer_identity == "a@example.com"
    assert booking.payment_session_id == "cs_test_1"
    assert booking_repository.commits == 2

    call = payment_gateway.calls[0]
    assert call["metadata"] == {"booking_id": str(response.id), "slot_id": str(slot.id)}
    assert call["amount_minor"] == 15000
    assert call["currency"] == "sek"
    assert f"booking_id={response.id}" in call["success_url"]
    assert "{CHECKOUT_SESSION_ID}" in call["success_url"]


@pytest.mark.asyncio
async def test_checkout_amount_follows_option_store(
    booking_service,
    options_repository,
    payment_gateway,
    slot,
) -> None:
    await options_repository.create_option(BookingOptionNameEnum.PRICE, "99.50")
    await options_repository.create_option(BookingOptionNameEnum.CURRENCY, "EUR")

    await booking_service.create_booking(BookingCreate(slot_id=slot.id, customer_identity="a@example.com"))

    assert payment_gateway.calls[0]["amount_minor"] == 9950
    assert payment_gateway.calls[0]["currency"] == "eur"


@pytest.mark.asyncio
async def test_booking_unknown_slot_raises_not_found_and_writes_nothing(
    booking_service,
    booking_repository,
    payment_gateway,
) -> None:
    with pytest.raises(SlotNotFoundException):
        await booking_service.create_booking(BookingCreate(slot_id=uuid4(), customer_identity="a@example.com"))

    assert booking_repository.bookings == {}
    assert payment_gateway.calls == []


@pytest.mark.asyncio
async def test_booking_booked_slot_raises_conflict(booking_service, booking_repository, slot) -> None:
    await booking_service.create_booking(BookingCreate(slot_id=slot.id, customer_identity="first@example.com"))

    with pytest.raises(SlotUnavailableException):
        await booking_service.create_booking(BookingCreate(slot_id=slot.id, customer_identity="second@example.com"))

    assert len(booking_repository.bookings) == 1


@pytest.mark.asyncio
async def test_concurrent_bookings_for_one_slot_have_single_winner(
    booking_service,
    booking_repository,
    slot,
) -> None:
    results = await asyncio.gather(
        *(
            booking_service.create_booking(BookingCreate(slot_id=slot.id, customer_identity=f"user{index}@example.com"))
            for index in range(8)
        ),
        return_exceptions=True,
    )

    winners = [result for result in results if not isinstance(result, Exception)]
    losers = [result for result in results if isinstance(result, Exception)]

    assert len(winners) == 1
    assert len(losers) == 7
    assert all(isinstance(error, SlotUnavailableException) for error in losers)
    assert len(booking_repository.bookings) == 1


@pytest.mark.asyncio
async def test_provider_failure_marks_booking_failed_and_releases_slot(
    booking_service,
    booking_repository,
    payment_gateway,
    slot,
) -> None:
    payment_gateway.error = PaymentProviderException("card network down")

    with pytest.raises(PaymentProviderException) as exc:
        await booking_service.create_booking(BookingCreate(slot_id=slot.id, customer_identity="a@example.com"))

    assert exc.value.status_code == 500
    (booking,) = booking_repository.bookings.values()
    assert booking.payment_status == PaymentStatusEnum.FAILED
    assert booking.payment_session_id is None
    assert slot.status == SlotStatusEnum.AVAILABLE
    assert booking_repository.commits == 2


@pytest.mark.asyncio
async def test_provider_timeout_compensates_and_is_retryable(
    booking_service,
    booking_repository,
    payment_gateway,
    slot,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(booking_service_module.settings, "payment_timeout_seconds", 0.01)
    payment_gateway.delay_seconds = 0.05

    with pytest.raises(PaymentProviderTimeoutException) as exc:
        await booking_service.create_booking(BookingCreate(slot_id=slot.id, customer_identity="a@example.com"))

    assert exc.value.status_code == 503
    (booking,) = booking_repository.bookings.values()
    assert booking.payment_status == PaymentStatusEnum.FAILED
    assert slot.status == SlotStatusEnum.AVAILABLE
    await asyncio.sleep(0.2)


@pytest.mark.asyncio
async def test_checkout_opened_after_timeout_is_expired_and_logged(
    booking_service,
    booking_repository,
    payment_gateway,
    slot,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    monkeypatch.setattr(booking_service_module.settings, "payment_timeout_seconds", 0.01)
    payment_gateway.delay_seconds = 0.05

    with caplog.at_level(logging.WARNING, logger=booking_service_module.logger.name):
        with pytest.raises(PaymentProviderTimeoutException):
            await booking_service.create_booking(BookingCreate(slot_id=slot.id, customer_identity="a@example.com"))
        assert payment_gateway.expired == []

        # Let the slow provider call finish after the request gave up.
        await asyncio.sleep(0.2)

    assert payment_gateway.expired == ["cs_test_1"]
    assert "cs_test_1" in caplog.text
    (booking,) = booking_repository.bookings.values()
    assert booking.payment_status == PaymentStatusEnum.FAILED
    assert booking.payment_session_id is None


@pytest.mark.asyncio
async def test_session_write_failure_after_rollback_releases_slot(
    booking_service,
    booking_repository,
    scheduling_repository,
    payment_gateway,
    slot,
) -> None:
    slot_id = slot.id
    booking_repository.session_write_error = SQLAlchemyError("connection reset during update")

    with pytest.raises(PaymentProviderException) as exc:
        await booking_service.create_booking(BookingCreate(slot_id=slot_id, customer_identity="a@example.com"))

    assert exc.value.status_code == 500
    assert booking_repository.rollbacks == 1
    assert scheduling_repository.slots[slot_id].status == SlotStatusEnum.AVAILABLE
    (booking,) = booking_repository.bookings.values()
    assert booking.payment_status == PaymentStatusEnum.FAILED
    assert payment_gateway.expired == ["cs_test_1"]


@pytest.mark.asyncio
async def test_listing_cached_before_claim_commits_is_dropped_after_commit(
    booking_service,
    booking_repository,
    scheduling_service,
    cache,
    slot,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    stale_listing = json.dumps(
        [{"id": str(slot.id), "start_time": "2025-01-02T09:00:00Z", "end_time": "2025-01-02T09:30:00Z"}],
    )
    create_booking = booking_repository.create_booking

    async def create_booking_while_listing_is_read(slot_id, customer_identity):
        # A concurrent reader still sees the uncommitted claim as available.
        cache.store[AVAILABLE_SLOTS_CACHE_KEY] = stale_listing
        return await create_booking(slot_id, customer_identity)

    monkeypatch.setattr(booking_repository, "create_booking", create_booking_while_listing_is_read)

    await booking_service.create_booking(BookingCreate(slot_id=slot.id, customer_identity="a@example.com"))

    assert AVAILABLE_SLOTS_CACHE_KEY not in cache.store
    assert await scheduling_service.list_available_slots() == []


@pytest.mark.asyncio
async def test_slot_can_be_booked_again_after_provider_failure(
    booking_service,
    booking_repository,
    payment_gateway,
    slot,
) -> None:
    payment_gateway.error = PaymentProviderException("temporary")
    with pytest.raises(PaymentProviderException):
        await booking_service.create_booking(BookingCreate(slot_id=slot.id, customer_identity="a@example.com"))

    payment_gateway.error = None
    response = await booking_service.create_booking(BookingCreate(slot_id=slot.id, customer_identity="b@example.com"))

    assert response.payment_status == PaymentStatusEnum.PENDING
    statuses = sorted(booking.payment_status.value for booking in booking_repository.bookings.values())
    assert statuses == ["failed", "pending"]


@pytest.mark.asyncio
async def test_list_bookings_returns_newest_first(booking_service, booking_repository) -> None:
    older = booking_repository.add_booking(uuid4())
    newer = booking_repository.add_booking(uuid4())
    older.created_at = datetime(2025, 1, 1, tzinfo=UTC)
    newer.created_at = datetime(2025, 1, 2, tzinfo=UTC)

    bookings = await booking_service.list_bookings()

    assert [booking.id for booking in bookings] == [newer.id, older.id]


def test_booking_request_accepts_legacy_field_names() -> None:
    slot_id = uuid4()
    payload = BookingCreate.model_validate({"time_slot_id": str(slot_id), "email": "  a@example.com "})

    assert payload.slot_id == slot_id
    assert payload.customer_identity == "a@example.com"


@pytest.mark.parametrize(
    "body",
    [
        {"customer_identity": "a@example.com"},
        {"slot_id": "not-a-uuid", "customer_identity": "a@example.com"},
        {"slot_id": "11111111-1111-1111-1111-111111111111", "customer_identity": "   "},
        {"slot_id": "11111111-1111-1111-1111-111111111111", "customer_identity": "x" * 256},
    ],
)
def test_booking_request_rejects_invalid_input(body: dict) -> None:
    with pytest.raises(ValidationError):
        BookingCreate.model_validate(body)
