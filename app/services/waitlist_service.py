"""Visitor-facing waitlist operations and the entry points that run cascades."""

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking, BookingStatus
from app.models.product import Product, WebinarSignup
from app.models.tenant import Tenant
from app.models.waitlist import WaitlistEntry, WaitlistStatus, WebinarWaitlistEntry
from app.services.availability_service import AvailabilityService
from app.services.booking_waitlist import BookingWaitlistCascade
from app.services.notifier import CeleryNotifier
from app.services.waitlist_cascade import (
    AvailabilityOracle,
    CascadeOutcome,
    CascadePass,
    Notifier,
    ResourceType,
    WaitlistCascadeEngine,
)
from app.services.webinar_schedule import all_sessions_ended, expand_webinar_sessions
from app.services.webinar_waitlist import WebinarWaitlistCascade
from app.utils.datetime_utils import ensure_utc, utcnow
from core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    WaitlistHoldExpiredException,
)
from core.logging import get_logger

logger = get_logger(__name__)


class WaitlistService:
    """Join, claim and cascade for both waitlist flavours."""

    def __init__(
        self,
        db_session: AsyncSession,
        availability: Optional[AvailabilityOracle] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.db_session = db_session
        self.availability = availability or AvailabilityService(db_session)
        self.notifier = notifier or CeleryNotifier()

    def engine_for(self, resource_type: ResourceType) -> WaitlistCascadeEngine:
        engine_cls = (
            WebinarWaitlistCascade
            if resource_type == ResourceType.WEBINAR
            else BookingWaitlistCascade
        )
        return engine_cls(self.db_session, self.availability, self.notifier)

    # ============== Scheduled pass ==============

    async def run_scheduled_pass(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """One full pass over both waitlists; each gets its own pass state."""
        now = now or utcnow()
        booking = await self.engine_for(ResourceType.BOOKING).run_pass(CascadePass(now=now))
        webinar = await self.engine_for(ResourceType.WEBINAR).run_pass(CascadePass(now=now))
        return {"booking": booking.as_dict(), "webinar": webinar.as_dict()}

    async def cascade_after_cancellation(
        self, resource_type: ResourceType, tenant_id: str, resource: Any
    ) -> CascadeOutcome:
        """Offer a slot freed by a cancellation to the head of its queue."""
        outcome = await self.engine_for(resource_type).cascade(
            tenant_id, resource, CascadePass()
        )
        logger.info(
            f"Real-time {resource_type.value} cascade for {tenant_id}:{resource}: "
            f"{outcome.value}"
        )
        return outcome

    # ============== Join ==============

    async def _get_tenant(self, tenant_id: str) -> Tenant:
        tenant = await Tenant.get_by_id(self.db_session, tenant_id)
        if not tenant:
            raise NotFoundException(message="Tenant not found")
        return tenant

    async def _get_webinar(self, tenant_id: str, product_id: str) -> Product:
        product = await Product.get_by_id(self.db_session, tenant_id, product_id)
        if not product or not product.is_webinar or not product.is_active:
            raise NotFoundException(message="Webinar not found")
        return product

    async def join_booking_waitlist(
        self,
        tenant_id: str,
        day: date,
        visitor_name: str,
        visitor_email: str,
        visitor_phone: Optional[str] = None,
    ) -> tuple[WaitlistEntry, int]:
        """Queue a visitor for a fully booked date. Returns (entry, position)."""
        tenant = await self._get_tenant(tenant_id)

        if day < utcnow().date():
            raise BadRequestException(message="Cannot join the waitlist for a past date")

        existing = await WaitlistEntry.get_active_for_email(
            self.db_session, tenant_id, day, visitor_email
        )
        if existing:
            raise ConflictException(message="You are already on the waitlist for this date")

        if await self.availability.has_available_slots(tenant_id, day):
            raise BadRequestException(message="Slots are still available on this date")

        entry = await WaitlistEntry.create_entry(
            self.db_session,
            tenant_id=tenant_id,
            date=day,
            visitor_name=visitor_name,
            visitor_email=visitor_email,
            visitor_phone=visitor_phone,
            queued_at=utcnow(),
        )
        position = await WaitlistEntry.count_waiting(self.db_session, tenant_id, day)
        logger.info(f"{visitor_email} joined waitlist for {tenant_id}:{day} at #{position}")

        self._queue_confirmation(entry, tenant, day.isoformat(), position)
        return entry, position

    async def join_webinar_waitlist(
        self,
        tenant_id: str,
        product_id: str,
        visitor_name: str,
        visitor_email: str,
        visitor_phone: Optional[str] = None,
    ) -> tuple[WebinarWaitlistEntry, int]:
        """Queue a visitor for a full webinar. Returns (entry, position)."""
        tenant = await self._get_tenant(tenant_id)
        product = await self._get_webinar(tenant_id, product_id)

        if product.max_participants is None:
            raise BadRequestException(message="This webinar has no participant limit")

        sessions = expand_webinar_sessions(product.sessions, tenant.timezone)
        if all_sessions_ended(sessions, utcnow()):
            raise BadRequestException(message="This webinar has already ended")

        existing = await WebinarWaitlistEntry.get_active_for_email(
            self.db_session, tenant_id, product_id, visitor_email
        )
        if existing:
            raise ConflictException(message="You are already on the waitlist for this webinar")

        if await self.availability.remaining_capacity(tenant_id, product_id) > 0:
            raise BadRequestException(message="This webinar still has open spots")

        entry = await WebinarWaitlistEntry.create_entry(
            self.db_session,
            tenant_id=tenant_id,
            product_id=product_id,
            visitor_name=visitor_name,
            visitor_email=visitor_email,
            visitor_phone=visitor_phone,
            queued_at=utcnow(),
        )
        position = await WebinarWaitlistEntry.count_waiting(
            self.db_session, tenant_id, product_id
        )
        logger.info(
            f"{visitor_email} joined webinar waitlist for {tenant_id}:{product_id} "
            f"at #{position}"
        )

        self._queue_confirmation(entry, tenant, product.name, position)
        return entry, position

    def _queue_confirmation(
        self, entry: Any, tenant: Tenant, resource_label: str, position: int
    ) -> None:
        from app.tasks.waitlist_tasks import send_waitlist_confirmation_email

        try:
            send_waitlist_confirmation_email.delay(
                recipient_email=entry.visitor_email,
                recipient_name=entry.visitor_name,
                tenant_name=tenant.name,
                resource_label=resource_label,
                position=position,
            )
        except Exception as e:
            logger.error(
                f"Failed to queue waitlist confirmation for {entry.visitor_email}: {e}",
                exc_info=True,
            )

    # ============== Claim ==============

    async def claim_booking_entry(
        self,
        tenant_id: str,
        day: date,
        entry_id: str,
        visitor_email: str,
        start_time: datetime,
    ) -> WaitlistEntry:
        """Book the offered date at ``start_time`` and close the hold."""
        entry = await self._get_live_hold(
            WaitlistEntry, tenant_id, day, entry_id, visitor_email
        )
        slot = await AvailabilityService(self.db_session).find_open_slot(
            tenant_id, day, start_time
        )
        if slot is None:
            raise BadRequestException(message="That time is no longer available")

        booking = Booking(
            tenant_id=tenant_id,
            booking_date=day,
            start_time=slot.start_time,
            end_time=slot.end_time,
            status=BookingStatus.SCHEDULED,
            visitor_name=entry.visitor_name,
            visitor_email=entry.visitor_email,
        )
        return await self._claim(
            WaitlistEntry, tenant_id, day, entry_id, visitor_email, booking
        )

    async def claim_webinar_entry(
        self, tenant_id: str, product_id: str, entry_id: str, visitor_email: str
    ) -> WebinarWaitlistEntry:
        """Sign the visitor up for the webinar and close the hold."""
        entry = await self._get_live_hold(
            WebinarWaitlistEntry, tenant_id, product_id, entry_id, visitor_email
        )
        capacity = await AvailabilityService(self.db_session).remaining_capacity(
            tenant_id, product_id
        )
        if capacity <= 0:
            raise ConflictException(message="This webinar is already full")
        if await WebinarSignup.get_by_email(
            self.db_session, tenant_id, product_id, entry.visitor_email
        ):
            raise ConflictException(message="You are already signed up for this webinar")

        signup = WebinarSignup(
            tenant_id=tenant_id,
            product_id=product_id,
            visitor_name=entry.visitor_name,
            visitor_email=entry.visitor_email,
        )
        return await self._claim(
            WebinarWaitlistEntry, tenant_id, product_id, entry_id, visitor_email, signup
        )

    async def _get_live_hold(
        self,
        entry_model: Any,
        tenant_id: str,
        resource: Any,
        entry_id: str,
        visitor_email: str,
        now: Optional[datetime] = None,
    ) -> Any:
        now = now or utcnow()
        entry = await entry_model.get_by_id(self.db_session, tenant_id, resource, entry_id)
        if not entry or entry.visitor_email.lower() != visitor_email.lower():
            raise NotFoundException(message="Waitlist entry not found")

        status = WaitlistStatus(entry.status)
        if status == WaitlistStatus.BOOKED:
            raise ConflictException(message="This spot has already been claimed")
        if status == WaitlistStatus.WAITING:
            raise BadRequestException(message="No spot has been offered to you yet")

        expires_at = ensure_utc(entry.expires_at)
        if status == WaitlistStatus.EXPIRED or expires_at is None or expires_at < now:
            raise WaitlistHoldExpiredException()
        return entry

    async def _claim(
        self,
        entry_model: Any,
        tenant_id: str,
        resource: Any,
        entry_id: str,
        visitor_email: str,
        seat: Any,
    ) -> Any:
        """notified -> booked, committed together with the booking or signup."""
        claimed = await entry_model.conditional_update(
            self.db_session,
            tenant_id,
            resource,
            entry_id,
            expected_status=WaitlistStatus.NOTIFIED,
            commit=False,
            status=WaitlistStatus.BOOKED,
            expires_at=None,
        )
        if not claimed:
            # Expired by a pass between our read and write
            await self.db_session.rollback()
            raise WaitlistHoldExpiredException()

        self.db_session.add(seat)
        try:
            await self.db_session.commit()
        except IntegrityError:
            await self.db_session.rollback()
            raise ConflictException(message="This spot has already been claimed")

        logger.info(f"Waitlist entry {entry_id} claimed by {visitor_email}")
        return await entry_model.get_by_id(self.db_session, tenant_id, resource, entry_id)
