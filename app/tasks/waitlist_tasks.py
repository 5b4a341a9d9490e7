"""Background tasks for the waitlist cascade and its notifications."""

import asyncio
from typing import Any, Dict

from app.services.email_service import email_service
from app.services.sms_service import sms_service
from app.tasks.celery_app import celery_app
from core.db.session import async_session_factory
from core.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="process_waitlist_cascade")
def process_waitlist_cascade() -> Dict[str, Any]:
    """
    Run one scan-and-cascade pass over both waitlists.

    Scheduled by Celery Beat every WAITLIST_SCAN_INTERVAL_MINUTES to:
    1. Expire entries whose date or webinar is over
    2. Expire lapsed holds and offer the slot to the next visitor in line
    """
    return asyncio.run(_process_waitlist_cascade_async())


async def _process_waitlist_cascade_async() -> Dict[str, Any]:
    from app.services.waitlist_service import WaitlistService

    async with async_session_factory() as db_session:
        return await WaitlistService(db_session).run_scheduled_pass()


def _send_with_retry(task, send, description: str) -> bool:
    try:
        success = send()
        if not success and email_service.enabled:
            raise RuntimeError(f"SendGrid rejected {description}")
        if success:
            logger.info(f"Sent {description}")
        return success

    except Exception as e:
        logger.error(f"Error sending {description}: {str(e)}")
        # Retry up to 3 times with exponential backoff
        raise task.retry(exc=e, countdown=60 * (2 ** task.request.retries), max_retries=3)


@celery_app.task(bind=True, name="send_waitlist_slot_available_email")
def send_waitlist_slot_available_email(
    self,
    recipient_email: str,
    recipient_name: str,
    claim_url: str,
    context: Dict[str, Any],
) -> bool:
    """Email a visitor that a slot on their booking date is held for them."""
    return _send_with_retry(
        self,
        lambda: email_service.send_waitlist_slot_available(
            to_email=recipient_email,
            visitor_name=recipient_name,
            claim_url=claim_url,
            context=context,
        ),
        f"waitlist slot email to {recipient_email} for {context.get('date')}",
    )


@celery_app.task(bind=True, name="send_webinar_waitlist_slot_available_email")
def send_webinar_waitlist_slot_available_email(
    self,
    recipient_email: str,
    recipient_name: str,
    claim_url: str,
    context: Dict[str, Any],
) -> bool:
    """Email a visitor that a webinar seat is held for them."""
    return _send_with_retry(
        self,
        lambda: email_service.send_webinar_waitlist_slot_available(
            to_email=recipient_email,
            visitor_name=recipient_name,
            claim_url=claim_url,
            context=context,
        ),
        f"webinar waitlist email to {recipient_email} for {context.get('product_id')}",
    )


@celery_app.task(bind=True, name="send_waitlist_slot_available_sms")
def send_waitlist_slot_available_sms(
    self,
    phone_number: str,
    recipient_name: str,
    claim_url: str,
    context: Dict[str, Any],
) -> Dict[str, Any]:
    """Text the same offer to visitors who left a phone number."""
    if not sms_service.enabled:
        logger.info(f"Twilio not configured, skipping waitlist SMS to {phone_number}")
        return {"status": "skipped", "to": phone_number}

    message = (
        f"Hi {recipient_name}, a spot opened up with {context['tenant_name']}. "
        f"It is held for you for {context['notify_window_minutes']} minutes: {claim_url}"
    )
    try:
        result = sms_service.send_sms(phone_number, message)
    except ValueError as e:
        # Bad number: retrying will not help
        logger.warning(f"Not sending waitlist SMS: {e}")
        return {"status": "invalid", "error": str(e), "to": phone_number}

    if result["status"] != "sent":
        raise self.retry(
            exc=RuntimeError(result.get("error")),
            countdown=60 * (2 ** self.request.retries),
            max_retries=3,
        )
    return result


@celery_app.task(bind=True, name="send_waitlist_confirmation_email")
def send_waitlist_confirmation_email(
    self,
    recipient_email: str,
    recipient_name: str,
    tenant_name: str,
    resource_label: str,
    position: int,
) -> bool:
    """Confirm a waitlist join and tell the visitor their place in line."""
    return _send_with_retry(
        self,
        lambda: email_service.send_waitlist_confirmation(
            to_email=recipient_email,
            visitor_name=recipient_name,
            tenant_name=tenant_name,
            resource_label=resource_label,
            position=position,
        ),
        f"waitlist confirmation to {recipient_email}",
    )


@celery_app.task(bind=True, name="send_cancellation_confirmation_email")
def send_cancellation_confirmation_email(
    self,
    recipient_email: str,
    recipient_name: str,
    tenant_name: str,
    resource_label: str,
    refund_amount_cents: int,
    currency: str,
    is_full_refund: bool,
    refund_reason: str,
) -> bool:
    return _send_with_retry(
        self,
        lambda: email_service.send_cancellation_confirmation(
            to_email=recipient_email,
            visitor_name=recipient_name,
            tenant_name=tenant_name,
            resource_label=resource_label,
            refund_amount_cents=refund_amount_cents,
            currency=currency,
            is_full_refund=is_full_refund,
            refund_reason=refund_reason,
        ),
        f"cancellation confirmation to {recipient_email}",
    )
