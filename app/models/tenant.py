"""Tenant model: one business with its own calendar, webinars and policies."""

from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, Integer, String
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from app.services.refund_policy import CancellationPolicy
from core.config import config
from core.db import Base, TimestampMixin


class Tenant(Base, TimestampMixin):
    """A business account. Owns bookings, webinar products and waitlists."""

    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    custom_domain: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    timezone: Mapped[str] = mapped_column(
        String(64), nullable=False, default=lambda: config.DEFAULT_TIMEZONE
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default=lambda: config.DEFAULT_CURRENCY
    )

    # Weekly schedule, slot duration and buffer; merged over DEFAULT_BOOKING_CONFIG
    booking_config: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON, nullable=True
    )

    # Cancellation policy
    cancellation_deadline_hours: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=lambda: config.DEFAULT_CANCELLATION_DEADLINE_HOURS,
    )
    refund_tiers: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(
        JSON, nullable=True
    )  # [{"min_ratio": 0.5, "percent": 50}, ...] applied below the deadline

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, tenant_id: str
    ) -> Optional["Tenant"]:
        """Get tenant by ID."""
        return await db_session.get(cls, tenant_id)

    @property
    def cancellation_policy(self) -> CancellationPolicy:
        return CancellationPolicy.from_config(
            self.cancellation_deadline_hours, self.refund_tiers
        )

    @property
    def landing_page_url(self) -> str:
        """Public landing page; claim and signup links hang off this."""
        if self.custom_domain:
            return f"https://{self.custom_domain}"
        return f"{config.FRONTEND_URL.rstrip('/')}/{self.slug}"
