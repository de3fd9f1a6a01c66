"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine, commit_session, rollback_session
from app.core.enums import RoleEnum
from app.core.security import hash_password, verify_password
from app.modules.identity.repository import IdentityRepository
from app.modules.options.repository import OptionsRepository
from app.modules.options.service import OptionsService
from app.modules.scheduling.models import TimeSlot
from app.modules.scheduling.schemas import SlotWrite
from app.modules.scheduling.service import build_scheduling_service

DEMO_PASSWORD = "DemoPass123!"
DEMO_ADMIN_EMAIL = "demo-admin@wellmio.dev"

DEMO_SLOT_DAYS = 7
DEMO_SLOT_START_HOURS = (9, 14, 18)
DEMO_SLOT_DURATION_MINUTES = 30


@dataclass(slots=True)
class SeedStats:
    admin_created: bool = False
    options_created: int = 0
    slots_created: int = 0


async def _ensure_admin(session: AsyncSession) -> bool:
    repository = IdentityRepository(session)
    user = await repository.get_user_by_email(DEMO_ADMIN_EMAIL)
    if user is None:
        await repository.create_user(DEMO_ADMIN_EMAIL, hash_password(DEMO_PASSWORD), RoleEnum.ADMIN)
        return True

    if not verify_password(DEMO_PASSWORD, user.password_hash):
        user.password_hash = hash_password(DEMO_PASSWORD)
    user.role = RoleEnum.ADMIN
    user.is_active = True
    await session.flush()
    return False


def _build_demo_slot_ranges(today: date, tz_name: str) -> list[tuple[datetime, datetime]]:
    zone = ZoneInfo(tz_name)
    ranges: list[tuple[datetime, datetime]] = []
    for day_offset in range(1, DEMO_SLOT_DAYS + 1):
        target_date = today + timedelta(days=day_offset)
        for hour in DEMO_SLOT_START_HOURS:
            start_time = datetime.combine(target_date, time(hour=hour), tzinfo=zone)
            end_time = start_time + timedelta(minutes=DEMO_SLOT_DURATION_MINUTES)
            ranges.append((start_time, end_time))
    return ranges


async def _ensure_demo_slots(session: AsyncSession, tz_name: str) -> int:
    scheduling_service = build_scheduling_service(session)
    created = 0
    today = datetime.now(ZoneInfo(tz_name)).date()

    for start_time, end_time in _build_demo_slot_ranges(today, tz_name):
        existing = await session.scalar(select(TimeSlot.id).where(TimeSlot.start_time == start_time))
        if existing is not None:
            continue
        await scheduling_service.create_slot(SlotWrite(start_time=start_time, end_time=end_time))
        created += 1

    return created


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()
    try:
        async with SessionLocal() as session:
            try:
                stats.admin_created = await _ensure_admin(session)
                stats.options_created = await OptionsService(OptionsRepository(session)).ensure_defaults()
                stats.slots_created = await _ensure_demo_slots(session, settings.slot_timezone)
                await commit_session(session)
            except Exception:
                await rollback_session(session)
                raise
    finally:
        await close_engine()

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Seed idempotent demo data for Wellmio (admin user, booking options, time slots).",
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Admin created: {stats.admin_created}")
    print(f"- Booking options created: {stats.options_created}")
    print(f"- Time slots created: {stats.slots_created}")
    print("")
    print("Demo credentials (non-production only):")
    print(f"- admin: {DEMO_ADMIN_EMAIL} / {DEMO_PASSWORD}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
