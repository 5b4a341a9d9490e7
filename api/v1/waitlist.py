"""Waitlist API endpoints for visitors."""

from fastapi import APIRouter, Depends, status

from api.deps import get_waitlist_service
from app.schemas.waitlist import (
    BookingWaitlistClaim,
    BookingWaitlistJoin,
    WaitlistClaim,
    WaitlistEntryResponse,
    WaitlistJoinResponse,
    WebinarWaitlistJoin,
)
from app.services.waitlist_service import WaitlistService
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/tenants", tags=["Waitlist"])


@router.post(
    "/{tenant_id}/waitlist",
    response_model=WaitlistJoinResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_booking_waitlist(
    tenant_id: str,
    data: BookingWaitlistJoin,
    waitlist_service: WaitlistService = Depends(get_waitlist_service),
) -> WaitlistJoinResponse:
    """Join the waitlist for a fully booked date."""
    entry, position = await waitlist_service.join_booking_waitlist(
        tenant_id,
        data.date,
        visitor_name=data.visitor_name,
        visitor_email=data.visitor_email,
        visitor_phone=data.visitor_phone,
    )
    return WaitlistJoinResponse(
        entry=WaitlistEntryResponse.model_validate(entry), position=position
    )


@router.post("/{tenant_id}/waitlist/{entry_id}/claim", response_model=WaitlistEntryResponse)
async def claim_booking_waitlist_entry(
    tenant_id: str,
    entry_id: str,
    data: BookingWaitlistClaim,
    waitlist_service: WaitlistService = Depends(get_waitlist_service),
) -> WaitlistEntryResponse:
    """Claim the slot held for this entry before the hold expires."""
    entry = await waitlist_service.claim_booking_entry(
        tenant_id, data.date, entry_id, data.visitor_email, data.start_time
    )
    return WaitlistEntryResponse.model_validate(entry)


@router.post(
    "/{tenant_id}/webinars/{product_id}/waitlist",
    response_model=WaitlistJoinResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_webinar_waitlist(
    tenant_id: str,
    product_id: str,
    data: WebinarWaitlistJoin,
    waitlist_service: WaitlistService = Depends(get_waitlist_service),
) -> WaitlistJoinResponse:
    """Join the waitlist for a full webinar."""
    entry, position = await waitlist_service.join_webinar_waitlist(
        tenant_id,
        product_id,
        visitor_name=data.visitor_name,
        visitor_email=data.visitor_email,
        visitor_phone=data.visitor_phone,
    )
    return WaitlistJoinResponse(
        entry=WaitlistEntryResponse.model_validate(entry), position=position
    )


@router.post(
    "/{tenant_id}/webinars/{product_id}/waitlist/{entry_id}/claim",
    response_model=WaitlistEntryResponse,
)
async def claim_webinar_waitlist_entry(
    tenant_id: str,
    product_id: str,
    entry_id: str,
    data: WaitlistClaim,
    waitlist_service: WaitlistService = Depends(get_waitlist_service),
) -> WaitlistEntryResponse:
    entry = await waitlist_service.claim_webinar_entry(
        tenant_id, product_id, entry_id, data.visitor_email
    )
    return WaitlistEntryResponse.model_validate(entry)
