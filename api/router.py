from fastapi import APIRouter

from api.v1.cancellations import router as cancellations_router
from api.v1.cron import router as cron_router
from api.v1.waitlist import router as waitlist_router

router = APIRouter()

# Include v1 routers
router.include_router(waitlist_router, prefix="/v1")
router.include_router(cancellations_router, prefix="/v1")

# Scheduler entry points
router.include_router(cron_router, prefix="/v1")
