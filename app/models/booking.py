"""Booking model: a visitor's appointment on a tenant's calendar."""

import enum
from datetime import date, datetime
from typing import Optional, Sequence
from uuid import uuid4

from sqlalchemy import Date, DateTime, Enum, Integer, String, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, TenantMixin, TimestampMixin


class BookingStatus(str, enum.Enum):
    """Status of a booking."""

    PENDING = "pending"  # Awaiting payment
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Bookings in these states occupy a calendar slot
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.SCHEDULED)


class Booking(Base, TimestampMixin, TenantMixin):
    """A single booked slot on a tenant's calendar."""

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    booking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="Booking")

    status: Mapped[BookingStatus] = mapped_column(
        Enum(
            BookingStatus,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=BookingStatus.SCHEDULED,
        nullable=False,
    )

    visitor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    visitor_email: Mapped[str] = mapped_column(String(255), nullable=False)

    # Payment / refund
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    refund_amount_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    stripe_refund_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, tenant_id: str, booking_id: str
    ) -> Optional["Booking"]:
        """Get a tenant's booking by ID."""
        result = await db_session.execute(
            select(cls).where(cls.tenant_id == tenant_id, cls.id == booking_id)
        )
        return result.scalars().first()

    @classmethod
    async def get_active_for_date(
        cls, db_session: AsyncSession, tenant_id: str, day: date
    ) -> Sequence["Booking"]:
        """Bookings that occupy a slot on the given date."""
        result = await db_session.execute(
            select(cls)
            .where(
                cls.tenant_id == tenant_id,
                cls.booking_date == day,
                cls.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .order_by(cls.start_time)
        )
        return result.scalars().all()

    @property
    def is_cancellable(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    async def mark_cancelled(
        self,
        db_session: AsyncSession,
        cancelled_at: datetime,
        refund_amount_cents: int,
        stripe_refund_id: Optional[str] = None,
        cancelled_by: str = "visitor",
    ) -> bool:
        """Cancel the booking if it is still active.

        Returns False when another request already cancelled it.
        """
        model = type(self)
        stmt = (
            update(model)
            .where(
                model.id == self.id,
                model.tenant_id == self.tenant_id,
                model.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .values(
                status=BookingStatus.CANCELLED,
                cancelled_by=cancelled_by,
                cancelled_at=cancelled_at,
                refund_amount_cents=refund_amount_cents,
                stripe_refund_id=stripe_refund_id,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db_session.execute(stmt)
        await db_session.commit()
        if result.rowcount == 0:
            return False
        await db_session.refresh(self)
        return True
