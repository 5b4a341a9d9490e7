"""Availability oracle: is a slot free on a date, is there room in a webinar."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.models.product import Product, WebinarSignup
from app.models.tenant import Tenant
from app.utils.datetime_utils import ensure_utc, parse_hhmm, utcnow
from core.logging import get_logger

logger = get_logger(__name__)

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

DEFAULT_BOOKING_CONFIG: dict[str, Any] = {
    "slot_duration_minutes": 30,
    "buffer_minutes": 0,
    "weekly_schedule": {
        day: {"enabled": day not in ("saturday", "sunday"), "start": "09:00", "end": "17:00"}
        for day in WEEKDAYS
    },
}


def merge_booking_config(booking_config: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Overlay a tenant's partial config on the defaults, per weekday."""
    booking_config = booking_config or {}
    weekly = {
        day: {**DEFAULT_BOOKING_CONFIG["weekly_schedule"][day]}
        for day in WEEKDAYS
    }
    for day, hours in (booking_config.get("weekly_schedule") or {}).items():
        if day in weekly:
            weekly[day].update(hours)
    return {
        **DEFAULT_BOOKING_CONFIG,
        **{k: v for k, v in booking_config.items() if k != "weekly_schedule"},
        "weekly_schedule": weekly,
    }


@dataclass(frozen=True)
class TimeSlot:
    start_time: datetime
    end_time: datetime
    available: bool


def generate_available_slots(
    day: date,
    booking_config: dict[str, Any],
    bookings: Sequence[Booking],
    tz_name: str,
    now: Optional[datetime] = None,
) -> list[TimeSlot]:
    """Lay the tenant's working hours for ``day`` out as fixed-length slots.

    A slot is unavailable when it has already started or overlaps an active
    booking (widened by the buffer on both sides).
    """
    now = ensure_utc(now) if now is not None else utcnow()
    hours = booking_config["weekly_schedule"][WEEKDAYS[day.weekday()]]
    if not hours.get("enabled"):
        return []

    tz = ZoneInfo(tz_name)
    duration = timedelta(minutes=int(booking_config["slot_duration_minutes"]))
    buffer = timedelta(minutes=int(booking_config.get("buffer_minutes") or 0))
    if duration <= timedelta(0):
        return []

    day_start = datetime.combine(day, parse_hhmm(hours["start"]), tzinfo=tz)
    day_end = datetime.combine(day, parse_hhmm(hours["end"]), tzinfo=tz)

    busy = [
        (ensure_utc(b.start_time) - buffer, ensure_utc(b.end_time) + buffer)
        for b in bookings
    ]

    slots = []
    cursor = day_start
    while cursor + duration <= day_end:
        start = cursor.astimezone(timezone.utc)
        end = (cursor + duration).astimezone(timezone.utc)
        overlaps = any(start < busy_end and busy_start < end for busy_start, busy_end in busy)
        slots.append(TimeSlot(start, end, available=start > now and not overlaps))
        cursor += duration
    return slots


class AvailabilityService:
    """Answers the two availability questions the waitlist cascade asks."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def get_slots(
        self, tenant_id: str, day: date, now: Optional[datetime] = None
    ) -> list[TimeSlot]:
        tenant = await Tenant.get_by_id(self.db_session, tenant_id)
        if not tenant:
            logger.warning(f"Availability check for unknown tenant {tenant_id}")
            return []

        bookings = await Booking.get_active_for_date(self.db_session, tenant_id, day)
        return generate_available_slots(
            day,
            merge_booking_config(tenant.booking_config),
            bookings,
            tenant.timezone,
            now=now,
        )

    async def has_available_slots(
        self, tenant_id: str, day: date, now: Optional[datetime] = None
    ) -> bool:
        slots = await self.get_slots(tenant_id, day, now=now)
        return any(slot.available for slot in slots)

    async def find_open_slot(
        self,
        tenant_id: str,
        day: date,
        start_time: datetime,
        now: Optional[datetime] = None,
    ) -> Optional[TimeSlot]:
        """The open slot on ``day`` starting at ``start_time``, if there is one."""
        start_time = ensure_utc(start_time)
        for slot in await self.get_slots(tenant_id, day, now=now):
            if slot.available and slot.start_time == start_time:
                return slot
        return None

    async def remaining_capacity(self, tenant_id: str, product_id: str) -> int:
        """Free seats in a webinar; 0 when it has no participant limit set."""
        product = await Product.get_by_id(self.db_session, tenant_id, product_id)
        if not product or product.max_participants is None:
            return 0
        signups = await WebinarSignup.count_for_product(
            self.db_session, tenant_id, product_id
        )
        return max(product.max_participants - signups, 0)
