"""Waitlist schemas."""

from datetime import date as DateType
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from app.models.waitlist import WaitlistStatus
from app.schemas.base import BaseSchema


class WaitlistJoinBase(BaseSchema):
    visitor_name: str = Field(..., min_length=1, max_length=200)
    visitor_email: EmailStr
    visitor_phone: Optional[str] = Field(None, pattern=r"^\+[1-9]\d{6,14}$")


class BookingWaitlistJoin(WaitlistJoinBase):
    """Schema for joining the waitlist of a fully booked date."""

    date: DateType


class WebinarWaitlistJoin(WaitlistJoinBase):
    """Schema for joining the waitlist of a full webinar."""


class WaitlistClaim(BaseSchema):
    """Schema for claiming a held slot."""

    visitor_email: EmailStr


class BookingWaitlistClaim(WaitlistClaim):
    date: DateType
    start_time: datetime


class WaitlistEntryResponse(BaseSchema):
    """Schema for a waitlist entry."""

    id: str
    tenant_id: str
    visitor_name: str
    visitor_email: str
    status: WaitlistStatus
    queued_at: datetime
    notified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    date: Optional[DateType] = None
    product_id: Optional[str] = None


class WaitlistJoinResponse(BaseSchema):
    """Schema for the result of joining a waitlist."""

    entry: WaitlistEntryResponse
    position: int


class CascadeSummaryResponse(BaseSchema):
    expired: int = 0
    past_cleaned: int = 0
    notified: int = 0
    errors: int = 0
    anomalies: int = 0


class CronWaitlistResponse(BaseSchema):
    """Schema for the scheduled waitlist pass."""

    booking: CascadeSummaryResponse
    webinar: CascadeSummaryResponse
    duration_ms: int
