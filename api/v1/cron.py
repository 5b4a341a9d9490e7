"""Cron trigger endpoints, for schedulers that call over HTTP instead of Celery Beat."""

import time

from fastapi import APIRouter, Depends

from api.deps import get_waitlist_service, verify_cron_secret
from app.schemas.waitlist import CronWaitlistResponse
from app.services.waitlist_service import WaitlistService
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


@router.get(
    "/waitlist-notify",
    response_model=CronWaitlistResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def waitlist_notify(
    waitlist_service: WaitlistService = Depends(get_waitlist_service),
) -> CronWaitlistResponse:
    """Expire lapsed holds and notify the next visitor on each waitlist."""
    started = time.monotonic()
    summary = await waitlist_service.run_scheduled_pass()
    duration_ms = int((time.monotonic() - started) * 1000)

    logger.info(f"Waitlist cron finished in {duration_ms}ms: {summary}")
    return CronWaitlistResponse(**summary, duration_ms=duration_ms)
