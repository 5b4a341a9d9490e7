"""Webinar product, its sessions and the visitors signed up to it."""

import enum
import datetime as dt
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
    delete,
    func,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base, TenantMixin, TimestampMixin


class ProductType(str, enum.Enum):
    """Kind of product a tenant sells."""

    SERVICE = "service"
    WEBINAR = "webinar"


class Product(Base, TimestampMixin, TenantMixin):
    """A sellable product. Webinars carry a capacity and a session list."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    product_type: Mapped[ProductType] = mapped_column(
        Enum(
            ProductType,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=ProductType.SERVICE,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_participants: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    sessions: Mapped[list["WebinarSession"]] = relationship(
        "WebinarSession",
        lazy="selectin",
        order_by="WebinarSession.date",
        cascade="all, delete-orphan",
    )

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, tenant_id: str, product_id: str
    ) -> Optional["Product"]:
        """Get a tenant's product by ID (sessions are loaded eagerly)."""
        result = await db_session.execute(
            select(cls)
            .where(cls.tenant_id == tenant_id, cls.id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @property
    def is_webinar(self) -> bool:
        return self.product_type == ProductType.WEBINAR


class WebinarSession(Base):
    """One live session of a webinar, in the tenant's local time."""

    __tablename__ = "webinar_sessions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id"), nullable=False, index=True
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)


class WebinarSignup(Base, TimestampMixin, TenantMixin):
    """A visitor registered for a webinar. Counts against max_participants."""

    __tablename__ = "webinar_signups"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id"), nullable=False, index=True
    )
    visitor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    visitor_email: Mapped[str] = mapped_column(String(255), nullable=False)
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "product_id",
            "visitor_email",
            name="uq_webinar_signup_visitor",
        ),
    )

    @classmethod
    async def count_for_product(
        cls, db_session: AsyncSession, tenant_id: str, product_id: str
    ) -> int:
        result = await db_session.execute(
            select(func.count(cls.id)).where(
                cls.tenant_id == tenant_id, cls.product_id == product_id
            )
        )
        return result.scalar() or 0

    @classmethod
    async def get_by_email(
        cls, db_session: AsyncSession, tenant_id: str, product_id: str, email: str
    ) -> Optional["WebinarSignup"]:
        result = await db_session.execute(
            select(cls).where(
                cls.tenant_id == tenant_id,
                cls.product_id == product_id,
                func.lower(cls.visitor_email) == email.lower(),
            )
        )
        return result.scalars().first()

    async def remove(self, db_session: AsyncSession) -> bool:
        """Delete the signup. Returns False if it was already gone."""
        model = type(self)
        result = await db_session.execute(
            delete(model)
            .where(model.id == self.id)
            .execution_options(synchronize_session=False)
        )
        await db_session.commit()
        return result.rowcount > 0
