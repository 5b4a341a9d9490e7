"""Tests for the webinar waitlist cascade and session expansion."""

from datetime import date, datetime, time, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.product import Product, ProductType, WebinarSession
from app.models.tenant import Tenant
from app.models.waitlist import WaitlistStatus
from app.services.waitlist_cascade import CascadeOutcome, CascadePass
from app.services.webinar_schedule import all_sessions_ended, expand_webinar_sessions
from app.services.webinar_waitlist import WebinarWaitlistCascade
from conftest import NOW, TODAY

pytestmark = pytest.mark.asyncio


@pytest.fixture
def engine(db_session: AsyncSession, availability, notifier):
    return WebinarWaitlistCascade(db_session, availability, notifier)


async def create_product(db_session, tenant, session_days, max_participants=2):
    product = Product(
        tenant_id=tenant.id,
        name="Desk Stretching Basics",
        product_type=ProductType.WEBINAR,
        price_cents=2000,
        max_participants=max_participants,
    )
    product.sessions = [
        WebinarSession(date=day, start_time=time(9, 0), end_time=time(10, 0))
        for day in session_days
    ]
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)
    return product


class TestWebinarPass:
    """Tests for run_pass over webinar waitlists."""

    async def test_full_webinar_does_not_cascade(
        self, db_session, engine, availability, notifier, test_webinar, create_webinar_waitlist_entry
    ):
        """Capacity 2, two signups, one waiting entry: nothing happens."""
        entry = await create_webinar_waitlist_entry(
            test_webinar.id, "a@example.com", NOW - timedelta(hours=1)
        )
        availability.capacity[test_webinar.id] = 0

        summary = await engine.run_pass(CascadePass(now=NOW))

        await db_session.refresh(entry)
        assert entry.status == WaitlistStatus.WAITING
        assert summary.notified == 0
        assert summary.past_cleaned == 0
        assert notifier.sent == []

    async def test_free_seat_notifies_oldest(
        self, db_session, engine, availability, notifier, test_webinar, create_webinar_waitlist_entry
    ):
        first = await create_webinar_waitlist_entry(
            test_webinar.id, "a@example.com", NOW - timedelta(hours=2)
        )
        second = await create_webinar_waitlist_entry(
            test_webinar.id, "b@example.com", NOW - timedelta(hours=1)
        )
        availability.capacity[test_webinar.id] = 1

        summary = await engine.run_pass(CascadePass(now=NOW))

        await db_session.refresh(first)
        await db_session.refresh(second)
        assert first.status == WaitlistStatus.NOTIFIED
        assert second.status == WaitlistStatus.WAITING
        assert summary.notified == 1
        sent = notifier.sent[0]
        assert sent["claim_url"] == (
            f"https://book.example.com/harbour-physio/webinar/{test_webinar.id}"
        )
        assert sent["context"]["resource_type"] == "webinar"
        assert sent["context"]["webinar_name"] == "Posture Masterclass"
        assert sent["context"]["product_id"] == test_webinar.id

    async def test_lapsed_hold_cascades_to_next(
        self, db_session, engine, availability, notifier, test_webinar, create_webinar_waitlist_entry
    ):
        held = await create_webinar_waitlist_entry(
            test_webinar.id,
            "a@example.com",
            NOW - timedelta(hours=2),
            status=WaitlistStatus.NOTIFIED,
            expires_at=NOW - timedelta(minutes=1),
        )
        nxt = await create_webinar_waitlist_entry(
            test_webinar.id, "b@example.com", NOW - timedelta(hours=1)
        )
        availability.capacity[test_webinar.id] = 1

        summary = await engine.run_pass(CascadePass(now=NOW))

        await db_session.refresh(held)
        await db_session.refresh(nxt)
        assert held.status == WaitlistStatus.EXPIRED
        assert nxt.status == WaitlistStatus.NOTIFIED
        assert summary.expired == 1
        assert summary.notified == 1

    async def test_ended_webinar_is_cleaned_without_cascade(
        self, db_session, engine, availability, notifier, test_tenant, create_webinar_waitlist_entry
    ):
        product = await create_product(
            db_session, test_tenant, [TODAY - timedelta(days=7), TODAY - timedelta(days=1)]
        )
        held = await create_webinar_waitlist_entry(
            product.id,
            "a@example.com",
            NOW - timedelta(days=8),
            status=WaitlistStatus.NOTIFIED,
            expires_at=NOW - timedelta(days=2),
        )
        waiting = await create_webinar_waitlist_entry(
            product.id, "b@example.com", NOW - timedelta(days=8)
        )
        availability.capacity[product.id] = 5

        summary = await engine.run_pass(CascadePass(now=NOW))

        await db_session.refresh(held)
        await db_session.refresh(waiting)
        assert held.status == WaitlistStatus.EXPIRED
        assert waiting.status == WaitlistStatus.EXPIRED
        assert summary.past_cleaned == 2
        assert summary.expired == 0
        assert notifier.sent == []
        assert availability.calls == []

    async def test_live_hold_on_ended_webinar_is_cleaned(
        self, db_session, engine, availability, notifier, test_tenant, create_webinar_waitlist_entry
    ):
        product = await create_product(db_session, test_tenant, [TODAY - timedelta(days=1)])
        held = await create_webinar_waitlist_entry(
            product.id,
            "a@example.com",
            NOW - timedelta(days=3),
            status=WaitlistStatus.NOTIFIED,
            expires_at=NOW + timedelta(minutes=5),
        )
        availability.capacity[product.id] = 5

        summary = await engine.run_pass(CascadePass(now=NOW))

        await db_session.refresh(held)
        assert held.status == WaitlistStatus.EXPIRED
        assert summary.past_cleaned == 1
        assert summary.expired == 0
        assert summary.notified == 0
        assert notifier.sent == []

    async def test_partly_run_webinar_is_still_open(
        self, db_session, engine, availability, test_tenant, create_webinar_waitlist_entry
    ):
        product = await create_product(
            db_session, test_tenant, [TODAY - timedelta(days=1), TODAY + timedelta(days=6)]
        )
        entry = await create_webinar_waitlist_entry(
            product.id, "a@example.com", NOW - timedelta(days=2)
        )

        summary = await engine.run_pass(CascadePass(now=NOW))

        await db_session.refresh(entry)
        assert entry.status == WaitlistStatus.WAITING
        assert summary.past_cleaned == 0

    async def test_webinar_without_sessions_is_not_past(
        self, db_session, engine, test_tenant, create_webinar_waitlist_entry
    ):
        product = await create_product(db_session, test_tenant, [])
        entry = await create_webinar_waitlist_entry(
            product.id, "a@example.com", NOW - timedelta(days=2)
        )

        summary = await engine.run_pass(CascadePass(now=NOW))

        await db_session.refresh(entry)
        assert entry.status == WaitlistStatus.WAITING
        assert summary.past_cleaned == 0

    async def test_missing_product_is_an_anomaly(
        self, db_session, engine, create_webinar_waitlist_entry
    ):
        entry = await create_webinar_waitlist_entry(
            "deleted-product", "a@example.com", NOW - timedelta(hours=1)
        )

        summary = await engine.run_pass(CascadePass(now=NOW))

        await db_session.refresh(entry)
        assert entry.status == WaitlistStatus.WAITING
        assert summary.anomalies == 1
        assert summary.errors == 0


class TestWebinarCascade:
    """Tests for the real-time webinar cascade."""

    async def test_context_reports_refund_terms(
        self, engine, availability, notifier, test_tenant: Tenant, test_webinar, create_webinar_waitlist_entry
    ):
        await create_webinar_waitlist_entry(
            test_webinar.id, "a@example.com", NOW - timedelta(hours=1)
        )
        availability.capacity[test_webinar.id] = 1

        outcome = await engine.cascade(test_tenant.id, test_webinar.id, CascadePass(now=NOW))

        assert outcome == CascadeOutcome.NOTIFIED
        context = notifier.sent[0]["context"]
        # First session is three days out, well before the 24 hour deadline
        assert context["price_cents"] == 5000
        assert context["currency"] == "AUD"
        assert context["refund_if_cancelled_cents"] == 5000
        assert context["refund_reason"] == "Cancelled before deadline"

    async def test_full_webinar_reports_no_availability(
        self, engine, availability, test_tenant: Tenant, test_webinar, create_webinar_waitlist_entry
    ):
        await create_webinar_waitlist_entry(
            test_webinar.id, "a@example.com", NOW - timedelta(hours=1)
        )

        outcome = await engine.cascade(test_tenant.id, test_webinar.id, CascadePass(now=NOW))

        assert outcome == CascadeOutcome.NO_AVAILABILITY


class TestExpandWebinarSessions:
    """Tests for expand_webinar_sessions and all_sessions_ended."""

    def test_converts_local_time_to_utc(self):
        session = SimpleNamespace(date=date(2030, 1, 15), start_time=time(9, 0), end_time=time(10, 30))
        [expanded] = expand_webinar_sessions([session], "Australia/Sydney")
        # Sydney is UTC+11 in January
        assert expanded.start_time == datetime(2030, 1, 14, 22, 0, tzinfo=timezone.utc)
        assert expanded.end_time == datetime(2030, 1, 14, 23, 30, tzinfo=timezone.utc)

    def test_overnight_session_ends_next_day(self):
        session = SimpleNamespace(date=date(2030, 1, 15), start_time=time(23, 0), end_time=time(1, 0))
        [expanded] = expand_webinar_sessions([session], "UTC")
        assert expanded.end_time == datetime(2030, 1, 16, 1, 0, tzinfo=timezone.utc)

    def test_ordered_by_start(self):
        sessions = [
            SimpleNamespace(date=date(2030, 1, 20), start_time=time(9, 0), end_time=time(10, 0)),
            SimpleNamespace(date=date(2030, 1, 10), start_time=time(9, 0), end_time=time(10, 0)),
        ]
        expanded = expand_webinar_sessions(sessions, "UTC")
        assert [s.date for s in expanded] == [date(2030, 1, 10), date(2030, 1, 20)]

    def test_all_sessions_ended(self):
        sessions = expand_webinar_sessions(
            [SimpleNamespace(date=date(2030, 1, 10), start_time=time(9, 0), end_time=time(10, 0))],
            "UTC",
        )
        assert all_sessions_ended(sessions, datetime(2030, 1, 10, 10, 1, tzinfo=timezone.utc))
        assert not all_sessions_ended(sessions, datetime(2030, 1, 10, 9, 30, tzinfo=timezone.utc))

    def test_no_sessions_never_ended(self):
        assert all_sessions_ended([], NOW) is False
