from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

if TYPE_CHECKING:
    from app.models.tenant import Tenant


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


class TenantMixin:
    """Mixin that scopes a row to a single tenant."""

    @declared_attr.directive
    def tenant_id(cls) -> Mapped[str]:  # type: ignore[override]
        return mapped_column(
            String(36), ForeignKey("tenants.id"), nullable=False, index=True
        )

    @declared_attr.directive
    def tenant(cls) -> Mapped["Tenant"]:  # type: ignore[override]
        return relationship("Tenant")


__all__ = ["TimestampMixin", "TenantMixin"]
