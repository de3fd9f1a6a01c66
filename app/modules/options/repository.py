"""Booking option repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import BookingOptionNameEnum
from app.modules.options.models import BookingOption


class OptionsRepository:
    """DB operations for the option store."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_options(self) -> list[BookingOption]:
        stmt = select(BookingOption).order_by(BookingOption.name.asc())
        return list((await self.session.scalars(stmt)).all())

    async def get_option_by_id(self, option_id: UUID) -> BookingOption | None:
        return await self.session.get(BookingOption, option_id)

    async def get_option_by_name(self, name: BookingOptionNameEnum) -> BookingOption | None:
        stmt = select(BookingOption).where(BookingOption.name == name)
        return await self.session.scalar(stmt)

    async def create_option(
        self,
        name: BookingOptionNameEnum,
        value: str,
        option_id: UUID | None = None,
    ) -> BookingOption:
        option = BookingOption(name=name, value=value)
        if option_id is not None:
            option.id = option_id
        self.session.add(option)
        await self.session.flush()
        return option

    async def update_option(self, option: BookingOption, name: BookingOptionNameEnum, value: str) -> BookingOption:
        option.name = name
        option.value = value
        await self.session.flush()
        return option
