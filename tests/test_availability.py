"""Tests for the slot generator and the availability oracle."""

from datetime import datetime, timedelta, timezone

import pytest

from app.models.booking import Booking, BookingStatus
from app.models.product import Product, ProductType
from app.services.availability_service import (
    AvailabilityService,
    generate_available_slots,
    merge_booking_config,
)
from conftest import NOW, TODAY

pytestmark = pytest.mark.asyncio

THURSDAY = TODAY + timedelta(days=2)
SATURDAY = TODAY + timedelta(days=4)


def at(day, hour, minute=0):
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def booking(start, end, status=BookingStatus.SCHEDULED):
    return Booking(
        booking_date=start.date(),
        start_time=start,
        end_time=end,
        visitor_name="Sam",
        visitor_email="sam@example.com",
        status=status,
    )


class TestGenerateAvailableSlots:
    """Tests for generate_available_slots."""

    def test_default_working_day(self):
        slots = generate_available_slots(THURSDAY, merge_booking_config(None), [], "UTC", now=NOW)
        assert len(slots) == 16
        assert slots[0].start_time == at(THURSDAY, 9)
        assert slots[-1].end_time == at(THURSDAY, 17)
        assert all(slot.available for slot in slots)

    def test_weekend_is_closed(self):
        assert generate_available_slots(SATURDAY, merge_booking_config(None), [], "UTC", now=NOW) == []

    def test_booked_slots_are_taken(self):
        slots = generate_available_slots(
            THURSDAY,
            merge_booking_config(None),
            [booking(at(THURSDAY, 9), at(THURSDAY, 10))],
            "UTC",
            now=NOW,
        )
        assert [s.available for s in slots[:3]] == [False, False, True]

    def test_buffer_widens_bookings(self):
        config = merge_booking_config({"buffer_minutes": 15})
        slots = generate_available_slots(
            THURSDAY,
            config,
            [booking(at(THURSDAY, 10), at(THURSDAY, 10, 30))],
            "UTC",
            now=NOW,
        )
        by_start = {s.start_time: s.available for s in slots}
        assert by_start[at(THURSDAY, 9)] is True
        assert by_start[at(THURSDAY, 9, 30)] is False
        assert by_start[at(THURSDAY, 10)] is False
        assert by_start[at(THURSDAY, 10, 30)] is False
        assert by_start[at(THURSDAY, 11)] is True

    def test_started_slots_are_unavailable(self):
        slots = generate_available_slots(TODAY, merge_booking_config(None), [], "UTC", now=NOW)
        by_start = {s.start_time: s.available for s in slots}
        assert by_start[at(TODAY, 9, 30)] is False
        assert by_start[at(TODAY, 10)] is False
        assert by_start[at(TODAY, 10, 30)] is True

    def test_local_hours_in_tenant_timezone(self):
        slots = generate_available_slots(
            THURSDAY, merge_booking_config(None), [], "Australia/Sydney", now=NOW
        )
        # 09:00 AEDT is 22:00 UTC the previous day
        assert slots[0].start_time == at(THURSDAY - timedelta(days=1), 22)


class TestMergeBookingConfig:
    """Tests for merge_booking_config."""

    def test_partial_override_keeps_defaults(self):
        config = merge_booking_config(
            {
                "slot_duration_minutes": 60,
                "weekly_schedule": {"saturday": {"enabled": True}},
            }
        )
        assert config["slot_duration_minutes"] == 60
        assert config["buffer_minutes"] == 0
        assert config["weekly_schedule"]["saturday"] == {
            "enabled": True,
            "start": "09:00",
            "end": "17:00",
        }
        assert config["weekly_schedule"]["monday"]["enabled"] is True

    def test_defaults_are_not_mutated(self):
        merge_booking_config({"weekly_schedule": {"monday": {"enabled": False}}})
        assert merge_booking_config(None)["weekly_schedule"]["monday"]["enabled"] is True


class TestAvailabilityService:
    """Tests for the database-backed oracle."""

    @pytest.fixture
    async def one_slot_tenant(self, db_session, test_tenant):
        test_tenant.booking_config = {
            "slot_duration_minutes": 60,
            "weekly_schedule": {"thursday": {"start": "09:00", "end": "10:00"}},
        }
        await db_session.commit()
        return test_tenant

    async def test_open_day(self, db_session, one_slot_tenant):
        service = AvailabilityService(db_session)
        assert await service.has_available_slots(one_slot_tenant.id, THURSDAY, now=NOW) is True

    async def test_fully_booked_day(self, db_session, one_slot_tenant):
        entry = booking(at(THURSDAY, 9), at(THURSDAY, 10))
        entry.tenant_id = one_slot_tenant.id
        db_session.add(entry)
        await db_session.commit()

        service = AvailabilityService(db_session)
        assert await service.has_available_slots(one_slot_tenant.id, THURSDAY, now=NOW) is False

    async def test_cancelled_booking_frees_the_slot(self, db_session, one_slot_tenant):
        entry = booking(at(THURSDAY, 9), at(THURSDAY, 10), status=BookingStatus.CANCELLED)
        entry.tenant_id = one_slot_tenant.id
        db_session.add(entry)
        await db_session.commit()

        service = AvailabilityService(db_session)
        assert await service.has_available_slots(one_slot_tenant.id, THURSDAY, now=NOW) is True

    async def test_unknown_tenant(self, db_session):
        service = AvailabilityService(db_session)
        assert await service.has_available_slots("missing", THURSDAY, now=NOW) is False

    async def test_remaining_capacity(self, db_session, test_tenant, test_webinar, create_signup):
        service = AvailabilityService(db_session)
        assert await service.remaining_capacity(test_tenant.id, test_webinar.id) == 2

        await create_signup(test_webinar.id, "a@example.com")
        assert await service.remaining_capacity(test_tenant.id, test_webinar.id) == 1

        await create_signup(test_webinar.id, "b@example.com")
        assert await service.remaining_capacity(test_tenant.id, test_webinar.id) == 0

    async def test_no_participant_limit_means_no_capacity(self, db_session, test_tenant):
        product = Product(
            tenant_id=test_tenant.id,
            name="Open Q&A",
            product_type=ProductType.WEBINAR,
            max_participants=None,
        )
        db_session.add(product)
        await db_session.commit()

        service = AvailabilityService(db_session)
        assert await service.remaining_capacity(test_tenant.id, product.id) == 0

    async def test_unknown_product(self, db_session, test_tenant):
        service = AvailabilityService(db_session)
        assert await service.remaining_capacity(test_tenant.id, "missing") == 0
