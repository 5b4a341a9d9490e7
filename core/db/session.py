from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from core.config import config


def get_engine_config(database_url: str) -> Dict[str, Any]:
    """Get engine keyword arguments for the given database URL."""
    engine_kwargs: Dict[str, Any] = {"echo": False}

    if "postgresql" in database_url:
        engine_kwargs.update({
            "pool_size": config.DATABASE_POOL_SIZE,
            "max_overflow": config.DATABASE_MAX_OVERFLOW,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
        })
    elif "sqlite" in database_url:
        engine_kwargs.update({
            "connect_args": {"check_same_thread": False},
            "poolclass": NullPool,
        })

    return engine_kwargs


engine = create_async_engine(
    config.DATABASE_URL,
    **get_engine_config(config.DATABASE_URL)
)

# Conditional writes are issued as core UPDATE statements, so loaded instances
# must not be expired on commit or every scanned entry would be reloaded.
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that provides an async database session."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
