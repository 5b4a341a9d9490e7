from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.cancellation_service import CancellationService
from app.services.waitlist_service import WaitlistService
from core.config import config
from core.db import get_db
from core.exceptions.base import UnauthorizedException


async def verify_cron_secret(
    authorization: Optional[str] = Header(None),
) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>`` when a secret is configured."""
    if not config.CRON_SECRET:
        return
    if authorization != f"Bearer {config.CRON_SECRET}":
        raise UnauthorizedException(message="Invalid cron secret")


async def get_waitlist_service(
    db_session: AsyncSession = Depends(get_db),
) -> WaitlistService:
    return WaitlistService(db_session)


async def get_cancellation_service(
    db_session: AsyncSession = Depends(get_db),
) -> CancellationService:
    return CancellationService(db_session)
