"""Cancellation schemas."""

from datetime import date, datetime
from typing import Optional

from app.schemas.base import BaseSchema
from app.services.cancellation_service import CancellationPreview, CancellationResult


class CancellationPreviewResponse(BaseSchema):
    """What cancelling now would refund."""

    resource_type: str
    resource_id: str
    title: str
    visitor_name: str
    visitor_email: str
    start_time: datetime
    booking_date: Optional[date] = None
    is_paid: bool
    paid_amount_cents: int
    refund_amount_cents: int
    is_full_refund: bool
    refund_reason: str
    currency: str
    cancellation_deadline_hours: int
    is_before_deadline: bool

    @classmethod
    def from_preview(cls, preview: CancellationPreview) -> "CancellationPreviewResponse":
        return cls(
            resource_type=preview.resource_type.value,
            resource_id=preview.resource_id,
            title=preview.title,
            visitor_name=preview.visitor_name,
            visitor_email=preview.visitor_email,
            start_time=preview.start_time,
            booking_date=preview.booking_date,
            is_paid=preview.paid_amount_cents > 0,
            paid_amount_cents=preview.paid_amount_cents,
            refund_amount_cents=preview.refund.amount_cents,
            is_full_refund=preview.refund.is_full_refund,
            refund_reason=preview.refund.reason,
            currency=preview.currency,
            cancellation_deadline_hours=preview.cancellation_deadline_hours,
            is_before_deadline=preview.is_before_deadline,
        )


class CancellationResponse(BaseSchema):
    """Result of an executed cancellation."""

    cancelled: bool = True
    resource_type: str
    resource_id: str
    refund_amount_cents: int
    is_full_refund: bool
    refund_reason: str
    currency: str
    stripe_refund_id: Optional[str] = None
    waitlist_outcome: Optional[str] = None

    @classmethod
    def from_result(cls, result: CancellationResult) -> "CancellationResponse":
        return cls(
            resource_type=result.resource_type.value,
            resource_id=result.resource_id,
            refund_amount_cents=result.refund_amount_cents,
            is_full_refund=result.is_full_refund,
            refund_reason=result.refund_reason,
            currency=result.currency,
            stripe_refund_id=result.stripe_refund_id,
            waitlist_outcome=result.waitlist_outcome.value if result.waitlist_outcome else None,
        )
