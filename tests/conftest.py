from __future__ import annotations

import asyncio
import hashlib
import hmac
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

from app.core.enums import BookingOptionNameEnum, PaymentStatusEnum, RoleEnum, SlotStatusEnum
from app.modules.booking.service import BookingService
from app.modules.identity.service import IdentityService
from app.modules.options.service import OptionsService
from app.modules.payments.gateway import CheckoutSession
from app.modules.payments.service import PaymentService
from app.modules.scheduling.service import SchedulingService

WEBHOOK_SECRET = "whsec_test_secret"


@dataclass
class FakeSlot:
    id: UUID
    start_time: datetime
    end_time: datetime
    status: SlotStatusEnum = SlotStatusEnum.AVAILABLE
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class FakeSchedulingRepository:
    """In-memory registry; every transition completes without yielding to the loop."""

    def __init__(self) -> None:
        self.slots: dict[UUID, FakeSlot] = {}

    def add_slot(
        self,
        start_time: datetime,
        end_time: datetime,
        status: SlotStatusEnum = SlotStatusEnum.AVAILABLE,
        slot_id: UUID | None = None,
    ) -> FakeSlot:
        slot = FakeSlot(id=slot_id or uuid4(), start_time=start_time, end_time=end_time, status=status)
        self.slots[slot.id] = slot
        return slot

    async def create_slot(self, start_time: datetime, end_time: datetime) -> FakeSlot:
        return self.add_slot(start_time, end_time)

    async def get_slot_by_id(self, slot_id: UUID) -> FakeSlot | None:
        return self.slots.get(slot_id)

    async def list_available_slots(
        self,
        starts_from: datetime | None = None,
        starts_before: datetime | None = None,
    ) -> list[FakeSlot]:
        items = [
            slot
            for slot in self.slots.values()
            if slot.status == SlotStatusEnum.AVAILABLE
            and (starts_from is None or slot.start_time >= starts_from)
            and (starts_before is None or slot.start_time < starts_before)
        ]
        return sorted(items, key=lambda slot: (slot.start_time, str(slot.id)))

    async def list_slots(self) -> list[FakeSlot]:
        return sorted(self.slots.values(), key=lambda slot: (slot.start_time, str(slot.id)))

    async def update_slot_times(self, slot_id: UUID, start_time: datetime, end_time: datetime) -> FakeSlot | None:
        slot = self.slots.get(slot_id)
        if slot is None:
            return None
        slot.start_time = start_time
        slot.end_time = end_time
        return slot

    async def claim_slot(self, slot_id: UUID) -> FakeSlot | None:
        slot = self.slots.get(slot_id)
        if slot is None or slot.status != SlotStatusEnum.AVAILABLE:
            return None
        slot.status = SlotStatusEnum.BOOKED
        return slot

    async def release_slot(self, slot_id: UUID) -> FakeSlot | None:
        slot = self.slots.get(slot_id)
        if slot is None:
            return None
        slot.status = SlotStatusEnum.AVAILABLE
        return slot

    async def delete_available_slot(self, slot_id: UUID) -> bool:
        slot = self.slots.get(slot_id)
        if slot is None or slot.status != SlotStatusEnum.AVAILABLE:
            return False
        del self.slots[slot_id]
        return True


@dataclass
class FakeBooking:
    id: UUID
    slot_id: UUID | None
    customer_identity: str
    payment_status: PaymentStatusEnum = PaymentStatusEnum.PENDING
    payment_session_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class FakeBookingRepository:
    """Booking store sharing one fake unit of work with the slot registry.

    Like an SQLAlchemy session, ``rollback`` expires every row handed out so
    far: callers holding those objects can no longer read them.
    """

    def __init__(self, scheduling_repository: FakeSchedulingRepository | None = None) -> None:
        self.bookings: dict[UUID, FakeBooking] = {}
        self.scheduling_repository = scheduling_repository
        self.after_commit: list[Callable[[], Awaitable[None]]] = []
        self.session_write_error: Exception | None = None
        self.commits = 0
        self.rollbacks = 0

    def add_booking(
        self,
        slot_id: UUID | None,
        customer_identity: str = "guest@example.com",
        payment_status: PaymentStatusEnum = PaymentStatusEnum.PENDING,
    ) -> FakeBooking:
        booking = FakeBooking(
            id=uuid4(),
            slot_id=slot_id,
            customer_identity=customer_identity,
            payment_status=payment_status,
        )
        self.bookings[booking.id] = booking
        return booking

    async def create_booking(self, slot_id: UUID, customer_identity: str) -> FakeBooking:
        return self.add_booking(slot_id, customer_identity)

    async def get_booking_by_id(self, booking_id: UUID) -> FakeBooking | None:
        return self.bookings.get(booking_id)

    async def set_payment_session(self, booking_id: UUID, payment_session_id: str) -> FakeBooking | None:
        if self.session_write_error is not None:
            raise self.session_write_error
        booking = self.bookings.get(booking_id)
        if booking is None:
            return None
        booking.payment_session_id = payment_session_id
        return booking

    async def transition_payment_status(
        self,
        booking_id: UUID,
        from_status: PaymentStatusEnum,
        to_status: PaymentStatusEnum,
    ) -> FakeBooking | None:
        booking = self.bookings.get(booking_id)
        if booking is None or booking.payment_status != from_status:
            return None
        booking.payment_status = to_status
        return booking

    async def list_bookings(self) -> list[FakeBooking]:
        return sorted(self.bookings.values(), key=lambda booking: booking.created_at, reverse=True)

    def run_after_commit(self, callback: Callable[[], Awaitable[None]]) -> None:
        if callback not in self.after_commit:
            self.after_commit.append(callback)

    async def commit(self) -> None:
        self.commits += 1
        callbacks, self.after_commit = self.after_commit, []
        for callback in callbacks:
            await callback()

    async def rollback(self) -> None:
        self.rollbacks += 1
        self.after_commit = []
        stores: list[dict] = [self.bookings]
        if self.scheduling_repository is not None:
            stores.append(self.scheduling_repository.slots)
        for store in stores:
            for key, row in list(store.items()):
                store[key] = replace(row)
                row.__dict__.clear()


@dataclass
class FakeOption:
    id: UUID
    name: BookingOptionNameEnum
    value: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class FakeOptionsRepository:
    def __init__(self) -> None:
        self.options: dict[UUID, FakeOption] = {}

    async def list_options(self) -> list[FakeOption]:
        return sorted(self.options.values(), key=lambda option: option.name.value)

    async def get_option_by_id(self, option_id: UUID) -> FakeOption | None:
        return self.options.get(option_id)

    async def get_option_by_name(self, name: BookingOptionNameEnum) -> FakeOption | None:
        return next((option for option in self.options.values() if option.name == name), None)

    async def create_option(
        self,
        name: BookingOptionNameEnum,
        value: str,
        option_id: UUID | None = None,
    ) -> FakeOption:
        option = FakeOption(id=option_id or uuid4(), name=name, value=value)
        self.options[option.id] = option
        return option

    async def update_option(self, option: FakeOption, name: BookingOptionNameEnum, value: str) -> FakeOption:
        option.name = name
        option.value = value
        return option


class FakeCache:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.deleted: list[str] = []

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self.store[key] = value

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.store.pop(key, None)


class FakePaymentGateway:
    """Gateway double; set ``error`` or ``delay_seconds`` to simulate provider trouble."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.expired: list[str] = []
        self.error: Exception | None = None
        self.delay_seconds = 0.0

    async def create_checkout_session(self, **kwargs) -> CheckoutSession:
        self.calls.append(kwargs)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        number = len(self.calls)
        return CheckoutSession(
            session_id=f"cs_test_{number}",
            entry_url=f"https://checkout.stripe.test/c/pay/cs_test_{number}",
        )

    async def expire_checkout_session(self, session_id: str) -> None:
        self.expired.append(session_id)


def make_user(role: RoleEnum = RoleEnum.ADMIN) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        email=f"{role.value}@wellmio.dev",
        role=role,
        is_active=True,
        created_at=datetime.now(UTC),
    )


def sign_webhook_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header value for ``payload``."""
    signed_at = timestamp if timestamp is not None else int(time.time())
    digest = hmac.new(secret.encode("utf-8"), f"{signed_at}.{payload}".encode("utf-8"), hashlib.sha256)
    return f"t={signed_at},v1={digest.hexdigest()}"


@pytest.fixture
def scheduling_repository() -> FakeSchedulingRepository:
    return FakeSchedulingRepository()


@pytest.fixture
def booking_repository(scheduling_repository: FakeSchedulingRepository) -> FakeBookingRepository:
    return FakeBookingRepository(scheduling_repository)


@pytest.fixture
def options_repository() -> FakeOptionsRepository:
    return FakeOptionsRepository()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def scheduling_service(
    scheduling_repository: FakeSchedulingRepository,
    booking_repository: FakeBookingRepository,
    cache: FakeCache,
) -> SchedulingService:
    return SchedulingService(scheduling_repository, cache=cache, after_commit=booking_repository.run_after_commit)


@pytest.fixture
def options_service(options_repository: FakeOptionsRepository) -> OptionsService:
    return OptionsService(options_repository)


@pytest.fixture
def booking_service(
    booking_repository: FakeBookingRepository,
    scheduling_service: SchedulingService,
    options_service: OptionsService,
    payment_gateway: FakePaymentGateway,
) -> BookingService:
    return BookingService(
        booking_repository=booking_repository,
        scheduling_service=scheduling_service,
        options_service=options_service,
        payment_gateway=payment_gateway,
    )


@pytest.fixture
def payment_service(
    booking_repository: FakeBookingRepository,
    scheduling_service: SchedulingService,
) -> PaymentService:
    return PaymentService(
        booking_repository=booking_repository,
        scheduling_service=scheduling_service,
        webhook_secret=WEBHOOK_SECRET,
        tolerance_seconds=300,
    )


@pytest.fixture
def sign_webhook() -> Callable[..., str]:
    return sign_webhook_payload


@pytest.fixture
def admin_user() -> SimpleNamespace:
    return make_user(RoleEnum.ADMIN)


@pytest.fixture
def customer_user() -> SimpleNamespace:
    return make_user(RoleEnum.CUSTOMER)


class FakeIdentityRepository:
    def __init__(self) -> None:
        self.users: dict[UUID, SimpleNamespace] = {}

    async def get_user_by_email(self, email: str) -> SimpleNamespace | None:
        return next((user for user in self.users.values() if user.email == email), None)

    async def get_user_by_id(self, user_id: UUID) -> SimpleNamespace | None:
        return self.users.get(user_id)

    async def create_user(self, email: str, password_hash: str, role: RoleEnum) -> SimpleNamespace:
        user = SimpleNamespace(
            id=uuid4(),
            email=email,
            password_hash=password_hash,
            role=role,
            is_active=True,
            created_at=datetime.now(UTC),
        )
        self.users[user.id] = user
        return user


@pytest.fixture
def identity_repository() -> FakeIdentityRepository:
    return FakeIdentityRepository()


@pytest.fixture
def identity_service(identity_repository: FakeIdentityRepository) -> IdentityService:
    return IdentityService(identity_repository)
