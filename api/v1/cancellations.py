"""Visitor cancellation endpoints: GET previews the refund, POST executes."""

from fastapi import APIRouter, Depends

from api.deps import get_cancellation_service
from app.schemas.cancellation import CancellationPreviewResponse, CancellationResponse
from app.services.cancellation_service import CancellationService
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/tenants", tags=["Cancellations"])


@router.get(
    "/{tenant_id}/bookings/{booking_id}/cancel",
    response_model=CancellationPreviewResponse,
)
async def preview_booking_cancellation(
    tenant_id: str,
    booking_id: str,
    cancellation_service: CancellationService = Depends(get_cancellation_service),
) -> CancellationPreviewResponse:
    """Show the refund a visitor would get for cancelling now."""
    preview = await cancellation_service.preview_booking(tenant_id, booking_id)
    return CancellationPreviewResponse.from_preview(preview)


@router.post(
    "/{tenant_id}/bookings/{booking_id}/cancel",
    response_model=CancellationResponse,
)
async def cancel_booking(
    tenant_id: str,
    booking_id: str,
    cancellation_service: CancellationService = Depends(get_cancellation_service),
) -> CancellationResponse:
    """Cancel a booking, refund per the tenant's policy and offer the slot onward."""
    result = await cancellation_service.cancel_booking(tenant_id, booking_id)
    return CancellationResponse.from_result(result)


@router.get(
    "/{tenant_id}/webinars/{product_id}/signups/{email}/cancel",
    response_model=CancellationPreviewResponse,
)
async def preview_webinar_cancellation(
    tenant_id: str,
    product_id: str,
    email: str,
    cancellation_service: CancellationService = Depends(get_cancellation_service),
) -> CancellationPreviewResponse:
    preview = await cancellation_service.preview_webinar_signup(tenant_id, product_id, email)
    return CancellationPreviewResponse.from_preview(preview)


@router.post(
    "/{tenant_id}/webinars/{product_id}/signups/{email}/cancel",
    response_model=CancellationResponse,
)
async def cancel_webinar_signup(
    tenant_id: str,
    product_id: str,
    email: str,
    cancellation_service: CancellationService = Depends(get_cancellation_service),
) -> CancellationResponse:
    """Cancel a webinar signup, refund per policy and offer the seat onward."""
    result = await cancellation_service.cancel_webinar_signup(tenant_id, product_id, email)
    return CancellationResponse.from_result(result)
