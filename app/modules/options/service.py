"""Option store business logic layer."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import BookingOptionNameEnum
from app.modules.options.models import BookingOption
from app.modules.options.repository import OptionsRepository
from app.modules.options.schemas import BookingOptionWrite
from app.shared.exceptions import ConflictException, InvalidInputException

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS: dict[BookingOptionNameEnum, str] = {
    BookingOptionNameEnum.PRICE: "150",
    BookingOptionNameEnum.DURATION_MINUTES: "30",
    BookingOptionNameEnum.CURRENCY: "SEK",
    BookingOptionNameEnum.TIMEZONE: "Europe/Stockholm",
}

INTEGER_OPTIONS = frozenset(
    {
        BookingOptionNameEnum.DURATION_MINUTES,
        BookingOptionNameEnum.MAX_BOOKINGS_PER_DAY,
        BookingOptionNameEnum.BOOKING_WINDOW_DAYS,
    },
)

_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")
_INTEGER_RE = re.compile(r"^\+?\d+$")


@dataclass(frozen=True, slots=True)
class CheckoutPrice:
    """Session price in the currency's minor unit."""

    amount_minor: int
    currency: str


def _parse_price(value: str) -> Decimal:
    try:
        price = Decimal(value)
    except InvalidOperation as exc:
        raise InvalidInputException("price must be a decimal number") from exc
    if not price.is_finite() or price <= 0:
        raise InvalidInputException("price must be greater than zero")
    return price


def validate_option_value(name: BookingOptionNameEnum, value: str) -> None:
    """Check that value is meaningful for the named option."""
    normalized = value.strip()
    if not normalized:
        raise InvalidInputException("value must not be empty")

    if name == BookingOptionNameEnum.PRICE:
        _parse_price(normalized)
    elif name in INTEGER_OPTIONS:
        if not _INTEGER_RE.match(normalized) or int(normalized) <= 0:
            raise InvalidInputException(f"{name.value} must be a positive integer")
    elif name == BookingOptionNameEnum.CURRENCY:
        if not _CURRENCY_RE.match(normalized):
            raise InvalidInputException("currency must be a three-letter ISO 4217 code")
    elif name == BookingOptionNameEnum.TIMEZONE:
        try:
            ZoneInfo(normalized)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise InvalidInputException(f"Unknown timezone: {normalized}") from exc


class OptionsService:
    """Named configuration values for the booking flow."""

    def __init__(self, repository: OptionsRepository) -> None:
        self.repository = repository

    async def list_options(self) -> list[BookingOption]:
        return await self.repository.list_options()

    async def upsert_option(self, payload: BookingOptionWrite) -> BookingOption:
        """Update option by id (or name) and insert it when neither matches."""
        validate_option_value(payload.name, payload.value)

        option = None
        if payload.id is not None:
            option = await self.repository.get_option_by_id(payload.id)
        if option is None:
            option = await self.repository.get_option_by_name(payload.name)
            if option is None:
                created = await self.repository.create_option(payload.name, payload.value, option_id=payload.id)
                logger.info("Booking option %s created", payload.name.value)
                return created
        elif option.name != payload.name:
            owner = await self.repository.get_option_by_name(payload.name)
            if owner is not None and owner.id != option.id:
                raise ConflictException(f"Option {payload.name.value} already exists")

        updated = await self.repository.update_option(option, payload.name, payload.value)
        logger.info("Booking option %s updated", payload.name.value)
        return updated

    async def ensure_defaults(self) -> int:
        """Insert default values for options that are not configured yet."""
        created = 0
        for name, value in DEFAULT_OPTIONS.items():
            if await self.repository.get_option_by_name(name) is None:
                await self.repository.create_option(name, value)
                created += 1
        return created

    async def get_checkout_price(self) -> CheckoutPrice:
        """Resolve the amount charged for one session."""
        price_option = await self.repository.get_option_by_name(BookingOptionNameEnum.PRICE)
        currency_option = await self.repository.get_option_by_name(BookingOptionNameEnum.CURRENCY)

        price_value = price_option.value if price_option else DEFAULT_OPTIONS[BookingOptionNameEnum.PRICE]
        currency = currency_option.value if currency_option else DEFAULT_OPTIONS[BookingOptionNameEnum.CURRENCY]

        price = _parse_price(price_value.strip())
        amount_minor = int((price * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return CheckoutPrice(amount_minor=amount_minor, currency=currency.strip().lower())


async def get_options_service(session: AsyncSession = Depends(get_db_session)) -> OptionsService:
    """Dependency provider for option store service."""
    return OptionsService(OptionsRepository(session))
