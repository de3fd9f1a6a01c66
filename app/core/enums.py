"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    CUSTOMER = "customer"
    ADMIN = "admin"


class SlotStatusEnum(StrEnum):
    """Time slot availability state."""

    AVAILABLE = "available"
    BOOKED = "booked"


class PaymentStatusEnum(StrEnum):
    """Booking payment status."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BookingOptionNameEnum(StrEnum):
    """Configuration values an administrator may set."""

    PRICE = "price"
    DURATION_MINUTES = "duration_minutes"
    CURRENCY = "currency"
    TIMEZONE = "timezone"
    MAX_BOOKINGS_PER_DAY = "max_bookings_per_day"
    BOOKING_WINDOW_DAYS = "booking_window_days"
