"""Visitor cancellation of bookings and webinar signups, with refunds.

Cancelling a booking or a webinar signup frees a slot, so a successful
cancellation ends with a real-time cascade for the freed resource.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.models.product import Product, WebinarSignup
from app.models.tenant import Tenant
from app.services.refund_policy import RefundDecision, calculate_refund, is_before_deadline
from app.services.stripe_service import StripeService
from app.services.waitlist_cascade import CascadeOutcome, ResourceType
from app.services.waitlist_service import WaitlistService
from app.services.webinar_schedule import expand_webinar_sessions
from app.utils.datetime_utils import ensure_utc, utcnow
from core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    PaymentGatewayException,
)
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CancellationPreview:
    """What the visitor would get back if they cancelled now."""

    resource_type: ResourceType
    resource_id: str
    title: str
    visitor_name: str
    visitor_email: str
    start_time: datetime
    paid_amount_cents: int
    refund: RefundDecision
    currency: str
    cancellation_deadline_hours: int
    is_before_deadline: bool
    booking_date: Optional[date] = None


@dataclass(frozen=True)
class CancellationResult:
    resource_type: ResourceType
    resource_id: str
    refund_amount_cents: int
    is_full_refund: bool
    refund_reason: str
    currency: str
    stripe_refund_id: Optional[str] = None
    waitlist_outcome: Optional[CascadeOutcome] = None


class CancellationService:
    """Preview and execute visitor cancellations."""

    def __init__(
        self,
        db_session: AsyncSession,
        waitlist_service: Optional[WaitlistService] = None,
    ):
        self.db_session = db_session
        self.waitlist_service = waitlist_service or WaitlistService(db_session)

    # ============== Lookups ==============

    async def _get_tenant(self, tenant_id: str) -> Tenant:
        tenant = await Tenant.get_by_id(self.db_session, tenant_id)
        if not tenant:
            raise NotFoundException(message="Tenant not found")
        return tenant

    async def _get_active_booking(self, tenant_id: str, booking_id: str) -> Booking:
        booking = await Booking.get_by_id(self.db_session, tenant_id, booking_id)
        if not booking:
            raise NotFoundException(message="Booking not found")
        if not booking.is_cancellable:
            raise BadRequestException(
                message=f"Booking cannot be cancelled (status: {booking.status.value})"
            )
        return booking

    async def _get_webinar_signup(
        self, tenant_id: str, product_id: str, email: str
    ) -> tuple[Product, WebinarSignup]:
        product = await Product.get_by_id(self.db_session, tenant_id, product_id)
        if not product or not product.is_webinar or not product.is_active:
            raise NotFoundException(message="Webinar not found or inactive")
        signup = await WebinarSignup.get_by_email(
            self.db_session, tenant_id, product_id, email
        )
        if not signup:
            raise NotFoundException(message="Signup not found")
        return product, signup

    @staticmethod
    def _first_session_start(product: Product, tenant: Tenant, now: datetime) -> datetime:
        sessions = expand_webinar_sessions(product.sessions, tenant.timezone)
        # No schedule: treat the webinar as starting now
        return sessions[0].start_time if sessions else now

    # ============== Payments ==============

    async def _paid_amount(self, payment_intent_id: Optional[str]) -> int:
        if not payment_intent_id:
            return 0
        try:
            intent = await StripeService.get_payment_intent(payment_intent_id)
        except stripe.error.StripeError as e:
            raise PaymentGatewayException(
                message="Could not load the payment for this cancellation"
            ) from e
        return intent["amount"]

    async def _issue_refund(
        self, payment_intent_id: str, decision: RefundDecision, idempotency_key: str
    ) -> Optional[str]:
        """Refund through Stripe when there is something to refund."""
        if decision.amount_cents <= 0:
            return None
        try:
            refund = await StripeService.create_refund(
                payment_intent_id,
                amount_cents=None if decision.is_full_refund else decision.amount_cents,
                idempotency_key=idempotency_key,
            )
        except stripe.error.StripeError as e:
            raise PaymentGatewayException(message="Refund failed, nothing was cancelled") from e
        logger.info(
            f"Refund {refund['id']} issued for {payment_intent_id}: "
            f"{decision.amount_cents} cents"
        )
        return refund["id"]

    # ============== Bookings ==============

    async def preview_booking(
        self, tenant_id: str, booking_id: str, now: Optional[datetime] = None
    ) -> CancellationPreview:
        now = now or utcnow()
        tenant = await self._get_tenant(tenant_id)
        booking = await self._get_active_booking(tenant_id, booking_id)
        policy = tenant.cancellation_policy

        start = ensure_utc(booking.start_time)
        paid = await self._paid_amount(booking.stripe_payment_intent_id)
        return CancellationPreview(
            resource_type=ResourceType.BOOKING,
            resource_id=booking.id,
            title=booking.title,
            visitor_name=booking.visitor_name,
            visitor_email=booking.visitor_email,
            start_time=start,
            paid_amount_cents=paid,
            refund=calculate_refund(paid, start, policy, now=now),
            currency=tenant.currency,
            cancellation_deadline_hours=policy.cancellation_deadline_hours,
            is_before_deadline=is_before_deadline(start, policy, now=now),
            booking_date=booking.booking_date,
        )

    async def cancel_booking(
        self, tenant_id: str, booking_id: str, now: Optional[datetime] = None
    ) -> CancellationResult:
        """Refund per policy, cancel the booking, then cascade the freed date."""
        now = now or utcnow()
        tenant = await self._get_tenant(tenant_id)
        booking = await self._get_active_booking(tenant_id, booking_id)
        currency = tenant.currency

        start = ensure_utc(booking.start_time)
        paid = await self._paid_amount(booking.stripe_payment_intent_id)
        decision = calculate_refund(paid, start, tenant.cancellation_policy, now=now)

        stripe_refund_id = None
        if booking.stripe_payment_intent_id:
            stripe_refund_id = await self._issue_refund(
                booking.stripe_payment_intent_id,
                decision,
                idempotency_key=f"booking-cancel-{booking.id}",
            )

        # Conditional on the booking still being active
        cancelled = await booking.mark_cancelled(
            self.db_session,
            cancelled_at=now,
            refund_amount_cents=decision.amount_cents,
            stripe_refund_id=stripe_refund_id,
        )
        if not cancelled:
            raise ConflictException(message="Booking was already cancelled")

        logger.info(f"Booking {booking_id} cancelled by visitor")
        self._queue_confirmation(
            booking.visitor_email, booking.visitor_name, tenant, booking.title, decision
        )

        outcome = await self._cascade(ResourceType.BOOKING, tenant_id, booking.booking_date)
        return CancellationResult(
            resource_type=ResourceType.BOOKING,
            resource_id=booking_id,
            refund_amount_cents=decision.amount_cents,
            is_full_refund=decision.is_full_refund,
            refund_reason=decision.reason,
            currency=currency,
            stripe_refund_id=stripe_refund_id,
            waitlist_outcome=outcome,
        )

    # ============== Webinars ==============

    async def preview_webinar_signup(
        self,
        tenant_id: str,
        product_id: str,
        email: str,
        now: Optional[datetime] = None,
    ) -> CancellationPreview:
        now = now or utcnow()
        tenant = await self._get_tenant(tenant_id)
        product, signup = await self._get_webinar_signup(tenant_id, product_id, email)
        policy = tenant.cancellation_policy

        start = self._first_session_start(product, tenant, now)
        paid = await self._paid_amount(signup.stripe_payment_intent_id)
        return CancellationPreview(
            resource_type=ResourceType.WEBINAR,
            resource_id=product.id,
            title=product.name,
            visitor_name=signup.visitor_name,
            visitor_email=signup.visitor_email,
            start_time=start,
            paid_amount_cents=paid,
            refund=calculate_refund(paid, start, policy, now=now),
            currency=tenant.currency,
            cancellation_deadline_hours=policy.cancellation_deadline_hours,
            is_before_deadline=is_before_deadline(start, policy, now=now),
        )

    async def cancel_webinar_signup(
        self,
        tenant_id: str,
        product_id: str,
        email: str,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        """Refund per policy, delete the signup, then cascade the freed seat."""
        now = now or utcnow()
        tenant = await self._get_tenant(tenant_id)
        product, signup = await self._get_webinar_signup(tenant_id, product_id, email)
        currency = tenant.currency

        start = self._first_session_start(product, tenant, now)
        paid = await self._paid_amount(signup.stripe_payment_intent_id)
        decision = calculate_refund(paid, start, tenant.cancellation_policy, now=now)

        stripe_refund_id = None
        if signup.stripe_payment_intent_id:
            stripe_refund_id = await self._issue_refund(
                signup.stripe_payment_intent_id,
                decision,
                idempotency_key=f"webinar-cancel-{signup.id}",
            )

        visitor_email, visitor_name = signup.visitor_email, signup.visitor_name
        if not await signup.remove(self.db_session):
            raise ConflictException(message="Signup was already cancelled")

        logger.info(f"Webinar signup {visitor_email} for {product_id} cancelled by visitor")
        self._queue_confirmation(visitor_email, visitor_name, tenant, product.name, decision)

        outcome = await self._cascade(ResourceType.WEBINAR, tenant_id, product_id)
        return CancellationResult(
            resource_type=ResourceType.WEBINAR,
            resource_id=product_id,
            refund_amount_cents=decision.amount_cents,
            is_full_refund=decision.is_full_refund,
            refund_reason=decision.reason,
            currency=currency,
            stripe_refund_id=stripe_refund_id,
            waitlist_outcome=outcome,
        )

    # ============== Follow-ups ==============

    async def _cascade(
        self, resource_type: ResourceType, tenant_id: str, resource
    ) -> Optional[CascadeOutcome]:
        # The cancellation has already committed; a failed cascade waits for the next pass
        try:
            return await self.waitlist_service.cascade_after_cancellation(
                resource_type, tenant_id, resource
            )
        except Exception as e:
            logger.error(
                f"Waitlist cascade after cancellation failed for "
                f"{tenant_id}:{resource}: {e}",
                exc_info=True,
            )
            await self.db_session.rollback()
            return None

    def _queue_confirmation(
        self,
        visitor_email: str,
        visitor_name: str,
        tenant: Tenant,
        resource_label: str,
        decision: RefundDecision,
    ) -> None:
        from app.tasks.waitlist_tasks import send_cancellation_confirmation_email

        try:
            send_cancellation_confirmation_email.delay(
                recipient_email=visitor_email,
                recipient_name=visitor_name,
                tenant_name=tenant.name,
                resource_label=resource_label,
                refund_amount_cents=decision.amount_cents,
                currency=tenant.currency,
                is_full_refund=decision.is_full_refund,
                refund_reason=decision.reason,
            )
        except Exception as e:
            logger.error(
                f"Failed to queue cancellation confirmation for {visitor_email}: {e}",
                exc_info=True,
            )
