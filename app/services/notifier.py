"""Hands waitlist notifications to the Celery queue."""

from typing import Any

from core.logging import get_logger

logger = get_logger(__name__)


class CeleryNotifier:
    """Queue the "slot available" email (and SMS when a phone is on file).

    Delivery, retries and backoff happen in the worker; a queueing failure is
    only logged because the slot hold has already been written.
    """

    def notify(
        self,
        recipient_email: str,
        recipient_name: str,
        claim_url: str,
        context: dict[str, Any],
    ) -> None:
        from app.tasks.waitlist_tasks import (
            send_waitlist_slot_available_email,
            send_waitlist_slot_available_sms,
            send_webinar_waitlist_slot_available_email,
        )

        if context.get("resource_type") == "webinar":
            email_task = send_webinar_waitlist_slot_available_email
        else:
            email_task = send_waitlist_slot_available_email

        try:
            email_task.delay(
                recipient_email=recipient_email,
                recipient_name=recipient_name,
                claim_url=claim_url,
                context=context,
            )
        except Exception as e:
            logger.error(
                f"Failed to queue waitlist email for {recipient_email}: {e}",
                exc_info=True,
            )

        phone = context.get("visitor_phone")
        if not phone:
            return
        try:
            send_waitlist_slot_available_sms.delay(
                phone_number=phone,
                recipient_name=recipient_name,
                claim_url=claim_url,
                context=context,
            )
        except Exception as e:
            logger.error(f"Failed to queue waitlist SMS for {phone}: {e}", exc_info=True)
