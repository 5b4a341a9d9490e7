import os
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, AsyncGenerator, Optional
from unittest.mock import MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Ensure critical settings exist before the app/config modules import.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./dev.db")
os.environ.setdefault("FRONTEND_URL", "https://book.example.com")

import app.models  # noqa: F401  (registers every table on Base.metadata)
from app.models.product import Product, ProductType, WebinarSession, WebinarSignup
from app.models.tenant import Tenant
from app.models.waitlist import WaitlistEntry, WaitlistStatus, WebinarWaitlistEntry
from app.tasks import waitlist_tasks
from core.db import get_db
from core.db.base import Base
from main import app

# Use SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Fixed clock for engine tests
NOW = datetime(2030, 3, 12, 10, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


@pytest.fixture(autouse=True)
async def setup_db():
    """Create and drop all tables for each test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for testing."""
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def mock_task_queue():
    """Swap every waitlist task for a mock so nothing reaches a broker."""
    names = [
        "send_waitlist_slot_available_email",
        "send_webinar_waitlist_slot_available_email",
        "send_waitlist_slot_available_sms",
        "send_waitlist_confirmation_email",
        "send_cancellation_confirmation_email",
    ]
    mocks = {}
    patchers = []
    for name in names:
        patcher = patch.object(waitlist_tasks, name, MagicMock())
        mocks[name] = patcher.start()
        patchers.append(patcher)
    yield mocks
    for patcher in patchers:
        patcher.stop()


class FakeAvailability:
    """Availability oracle with answers set by the test."""

    def __init__(self, free_dates: Optional[set] = None, capacity: Optional[dict] = None):
        self.free_dates = set(free_dates or ())
        self.capacity = dict(capacity or {})
        self.calls: list[tuple] = []

    async def has_available_slots(self, tenant_id: str, day: date) -> bool:
        self.calls.append(("slots", tenant_id, day))
        return day in self.free_dates

    async def remaining_capacity(self, tenant_id: str, product_id: str) -> int:
        self.calls.append(("capacity", tenant_id, product_id))
        return self.capacity.get(product_id, 0)


class RecordingNotifier:
    """Notifier that records calls, optionally failing every one."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict[str, Any]] = []

    def notify(self, recipient_email, recipient_name, claim_url, context) -> None:
        if self.fail:
            raise ConnectionError("mail relay unreachable")
        self.sent.append(
            {
                "recipient_email": recipient_email,
                "recipient_name": recipient_name,
                "claim_url": claim_url,
                "context": context,
            }
        )


@pytest.fixture
def availability() -> FakeAvailability:
    return FakeAvailability()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def test_tenant(db_session: AsyncSession) -> Tenant:
    """Create a test tenant on UTC with a 24 hour cancellation deadline."""
    tenant = Tenant(
        name="Harbour Physio",
        slug="harbour-physio",
        timezone="UTC",
        currency="AUD",
        cancellation_deadline_hours=24,
    )
    db_session.add(tenant)
    await db_session.commit()
    await db_session.refresh(tenant)
    return tenant


@pytest.fixture
async def test_webinar(db_session: AsyncSession, test_tenant: Tenant) -> Product:
    """A two-session webinar, both sessions after NOW, capped at 2 seats."""
    product = Product(
        tenant_id=test_tenant.id,
        name="Posture Masterclass",
        product_type=ProductType.WEBINAR,
        price_cents=5000,
        max_participants=2,
    )
    product.sessions = [
        WebinarSession(date=TODAY + timedelta(days=3), start_time=time(18, 0), end_time=time(19, 0)),
        WebinarSession(date=TODAY + timedelta(days=10), start_time=time(18, 0), end_time=time(19, 0)),
    ]
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)
    return product


@pytest.fixture
async def create_waitlist_entry(db_session: AsyncSession, test_tenant: Tenant):
    """Factory fixture for booking waitlist entries."""

    async def _create(
        day: date,
        email: str,
        queued_at: datetime,
        status: WaitlistStatus = WaitlistStatus.WAITING,
        expires_at: Optional[datetime] = None,
        phone: Optional[str] = None,
    ) -> WaitlistEntry:
        entry = WaitlistEntry(
            tenant_id=test_tenant.id,
            date=day,
            visitor_name=email.split("@")[0].title(),
            visitor_email=email,
            visitor_phone=phone,
            status=status,
            queued_at=queued_at,
            notified_at=expires_at - timedelta(minutes=10) if expires_at else None,
            expires_at=expires_at,
        )
        db_session.add(entry)
        await db_session.commit()
        await db_session.refresh(entry)
        return entry

    return _create


@pytest.fixture
async def create_webinar_waitlist_entry(db_session: AsyncSession, test_tenant: Tenant):
    """Factory fixture for webinar waitlist entries."""

    async def _create(
        product_id: str,
        email: str,
        queued_at: datetime,
        status: WaitlistStatus = WaitlistStatus.WAITING,
        expires_at: Optional[datetime] = None,
    ) -> WebinarWaitlistEntry:
        entry = WebinarWaitlistEntry(
            tenant_id=test_tenant.id,
            product_id=product_id,
            visitor_name=email.split("@")[0].title(),
            visitor_email=email,
            status=status,
            queued_at=queued_at,
            notified_at=expires_at - timedelta(minutes=10) if expires_at else None,
            expires_at=expires_at,
        )
        db_session.add(entry)
        await db_session.commit()
        await db_session.refresh(entry)
        return entry

    return _create


@pytest.fixture
async def create_signup(db_session: AsyncSession, test_tenant: Tenant):
    """Factory fixture for webinar signups."""

    async def _create(
        product_id: str, email: str, payment_intent_id: Optional[str] = None
    ) -> WebinarSignup:
        signup = WebinarSignup(
            tenant_id=test_tenant.id,
            product_id=product_id,
            visitor_name=email.split("@")[0].title(),
            visitor_email=email,
            stripe_payment_intent_id=payment_intent_id,
        )
        db_session.add(signup)
        await db_session.commit()
        await db_session.refresh(signup)
        return signup

    return _create
