from core.db.base import Base
from core.db.mixins import TimestampMixin, TenantMixin
from core.db.session import async_session_factory, engine, get_db

__all__ = [
    "Base",
    "TimestampMixin",
    "TenantMixin",
    "async_session_factory",
    "engine",
    "get_db",
]
