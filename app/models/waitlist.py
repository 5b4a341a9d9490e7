"""Waitlist entries for single bookings (per date) and webinars (per product).

Both flavours share one storage contract: scan the active entries, read the
waiting queue for a resource, and mutate a single entry with a write that is
conditioned on the entry's current status. The conditional write is the only
arbiter of who holds a freed slot.
"""

import enum
import datetime as dt
from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    Date,
    Enum,
    ForeignKey,
    Index,
    String,
    func,
    select,
    text,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, TenantMixin, TimestampMixin
from core.logging import get_logger

logger = get_logger(__name__)


class WaitlistStatus(str, enum.Enum):
    """Lifecycle of a waitlist entry."""

    WAITING = "waiting"  # Queued, nobody has offered a slot yet
    NOTIFIED = "notified"  # Holding a freed slot until expires_at
    EXPIRED = "expired"  # Hold lapsed, resource passed, or slot went elsewhere
    BOOKED = "booked"  # Converted the hold into a booking


ACTIVE_WAITLIST_STATUSES = (WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED)

waitlist_status_type = Enum(
    WaitlistStatus,
    native_enum=False,
    length=20,
    values_callable=lambda e: [m.value for m in e],
)


class WaitlistEntryMixin(TenantMixin, TimestampMixin):
    """Columns and store operations shared by both waitlist flavours.

    Subclasses set ``resource_field`` to the column that, together with
    ``tenant_id``, identifies one FIFO queue.
    """

    resource_field = ""

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    visitor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    visitor_email: Mapped[str] = mapped_column(String(255), nullable=False)
    visitor_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    status: Mapped[WaitlistStatus] = mapped_column(
        waitlist_status_type,
        default=WaitlistStatus.WAITING,
        nullable=False,
        index=True,
    )
    queued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    notified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )  # Set iff status == notified

    @classmethod
    def resource_column(cls):
        return getattr(cls, cls.resource_field)

    @property
    def resource(self) -> Any:
        return getattr(self, self.resource_field)

    @classmethod
    async def scan_active(cls, db_session: AsyncSession) -> Sequence[Any]:
        """All waiting/notified entries across tenants, queue order per resource."""
        result = await db_session.execute(
            select(cls)
            .where(cls.status.in_(ACTIVE_WAITLIST_STATUSES))
            .order_by(cls.tenant_id, cls.resource_column(), cls.queued_at, cls.id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, tenant_id: str, resource: Any, entry_id: str
    ) -> Optional[Any]:
        result = await db_session.execute(
            select(cls).where(
                cls.tenant_id == tenant_id,
                cls.resource_column() == resource,
                cls.id == entry_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @classmethod
    async def get_waiting(
        cls, db_session: AsyncSession, tenant_id: str, resource: Any
    ) -> list[Any]:
        """Waiting entries for one queue, oldest first."""
        result = await db_session.execute(
            select(cls).where(
                cls.tenant_id == tenant_id,
                cls.resource_column() == resource,
                cls.status == WaitlistStatus.WAITING,
            )
            .execution_options(populate_existing=True)
        )
        # Sorted here rather than trusting the store's iteration order
        return sorted(result.scalars().all(), key=lambda e: (e.queued_at, e.id))

    @classmethod
    async def get_active_for_email(
        cls, db_session: AsyncSession, tenant_id: str, resource: Any, email: str
    ) -> Optional[Any]:
        result = await db_session.execute(
            select(cls).where(
                cls.tenant_id == tenant_id,
                cls.resource_column() == resource,
                func.lower(cls.visitor_email) == email.lower(),
                cls.status.in_(ACTIVE_WAITLIST_STATUSES),
            )
        )
        return result.scalars().first()

    @classmethod
    async def count_waiting(
        cls, db_session: AsyncSession, tenant_id: str, resource: Any
    ) -> int:
        result = await db_session.execute(
            select(func.count(cls.id)).where(
                cls.tenant_id == tenant_id,
                cls.resource_column() == resource,
                cls.status == WaitlistStatus.WAITING,
            )
        )
        return result.scalar() or 0

    @classmethod
    async def create_entry(cls, db_session: AsyncSession, **kwargs) -> Any:
        """Queue a new waiting entry."""
        entry = cls(status=WaitlistStatus.WAITING, **kwargs)
        db_session.add(entry)
        await db_session.commit()
        await db_session.refresh(entry)
        return entry

    @classmethod
    async def conditional_update(
        cls,
        db_session: AsyncSession,
        tenant_id: str,
        resource: Any,
        entry_id: str,
        expected_status: WaitlistStatus,
        commit: bool = True,
        **fields: Any,
    ) -> bool:
        """Update one entry only if it is still in ``expected_status``.

        Returns False on conflict: the entry moved on, or the write would
        give the queue a second notified entry. With ``commit=False`` the
        caller commits, so other rows can join the same transaction.
        """
        stmt = (
            update(cls)
            .where(
                cls.tenant_id == tenant_id,
                cls.resource_column() == resource,
                cls.id == entry_id,
                cls.status == expected_status,
            )
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await db_session.execute(stmt)
        except IntegrityError:
            # Partial unique index: another writer already holds this queue
            await db_session.rollback()
            logger.info(
                f"Conditional update on {cls.__tablename__} {entry_id} "
                f"rejected: queue already has a notified entry"
            )
            return False

        # A zero-row UPDATE still opened a transaction, so commit either way
        if commit:
            await db_session.commit()
        return result.rowcount == 1


def _one_hold_index(table: str, resource_column: str) -> Index:
    """Unique over (tenant, resource) for notified rows only."""
    return Index(
        f"uq_{table}_one_notified",
        "tenant_id",
        resource_column,
        unique=True,
        postgresql_where=text("status = 'notified'"),
        sqlite_where=text("status = 'notified'"),
    )


class WaitlistEntry(Base, WaitlistEntryMixin):
    """A visitor queued for a fully booked date."""

    __tablename__ = "waitlist_entries"

    resource_field = "date"

    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)

    __table_args__ = (_one_hold_index("waitlist_entries", "date"),)


class WebinarWaitlistEntry(Base, WaitlistEntryMixin):
    """A visitor queued for a webinar that is at capacity."""

    __tablename__ = "webinar_waitlist_entries"

    resource_field = "product_id"

    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id"), nullable=False, index=True
    )

    __table_args__ = (
        _one_hold_index("webinar_waitlist_entries", "product_id"),
    )
