from app.models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus
from app.models.product import Product, ProductType, WebinarSession, WebinarSignup
from app.models.tenant import Tenant
from app.models.waitlist import (
    ACTIVE_WAITLIST_STATUSES,
    WaitlistEntry,
    WaitlistStatus,
    WebinarWaitlistEntry,
)

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "ACTIVE_WAITLIST_STATUSES",
    "Booking",
    "BookingStatus",
    "Product",
    "ProductType",
    "Tenant",
    "WaitlistEntry",
    "WaitlistStatus",
    "WebinarSession",
    "WebinarSignup",
    "WebinarWaitlistEntry",
]
