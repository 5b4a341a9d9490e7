"""Email service for waitlist and cancellation emails."""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict
from zoneinfo import ZoneInfo

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from core.config import config

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

template_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def format_display_date(value: str) -> str:
    """``2025-03-10`` -> ``Monday, March 10, 2025``."""
    parsed = date.fromisoformat(value)
    return parsed.strftime("%A, %B %d, %Y").replace(" 0", " ")


def format_money(amount_cents: int, currency: str) -> str:
    return f"{amount_cents / 100:.2f} {currency}"


def format_expiry(expires_at: str, tz_name: str) -> str:
    local = datetime.fromisoformat(expires_at).astimezone(ZoneInfo(tz_name))
    return local.strftime("%I:%M %p").lstrip("0")


class EmailService:
    """Service for sending transactional emails using SendGrid."""

    def __init__(self):
        self.client = SendGridAPIClient(config.SENDGRID_API_KEY) if config.SENDGRID_API_KEY else None
        self.from_email = config.SENDGRID_FROM_EMAIL

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        template = template_env.get_template(template_name)
        return template.render(**context)

    def _send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """Send email using SendGrid."""
        if not self.client:
            logger.warning(
                f"SendGrid not configured. Would send email to {to_email} with subject: {subject}"
            )
            return False

        try:
            message = Mail(
                from_email=self.from_email,
                to_emails=to_email,
                subject=subject,
                html_content=html_content,
            )
            response = self.client.send(message)
            logger.info(f"Email sent to {to_email}: {subject} (Status: {response.status_code})")
            return response.status_code in [200, 201, 202]

        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {str(e)}")
            return False

    def send_waitlist_slot_available(
        self,
        to_email: str,
        visitor_name: str,
        claim_url: str,
        context: Dict[str, Any],
    ) -> bool:
        """Tell a waitlisted visitor that a booking slot is being held for them.

        ``context`` is the cascade's notification context: tenant name and
        timezone, the date, the hold expiry and the window length.
        """
        display_date = format_display_date(context["date"])
        html_content = self._render_template(
            "waitlist_slot_available.html",
            {
                "visitor_name": visitor_name,
                "claim_url": claim_url,
                "tenant_name": context["tenant_name"],
                "display_date": display_date,
                "expires_local": format_expiry(
                    context["expires_at"], context["tenant_timezone"]
                ),
                "notify_window_minutes": context["notify_window_minutes"],
            },
        )
        return self._send_email(
            to_email=to_email,
            subject=f"A spot opened up on {display_date}",
            html_content=html_content,
        )

    @staticmethod
    def _refund_terms(context: Dict[str, Any]) -> str:
        if "refund_if_cancelled_cents" not in context:
            return ""
        return (
            f"Price: {format_money(context['price_cents'], context['currency'])}. "
            f"If you cancel right after signing up: "
            f"{format_money(context['refund_if_cancelled_cents'], context['currency'])} back "
            f"({context['refund_reason'].lower()})."
        )

    def send_webinar_waitlist_slot_available(
        self,
        to_email: str,
        visitor_name: str,
        claim_url: str,
        context: Dict[str, Any],
    ) -> bool:
        """Tell a waitlisted visitor that a webinar seat is available."""
        html_content = self._render_template(
            "webinar_waitlist_slot_available.html",
            {
                "visitor_name": visitor_name,
                "claim_url": claim_url,
                "tenant_name": context["tenant_name"],
                "webinar_name": context["webinar_name"],
                "expires_local": format_expiry(
                    context["expires_at"], context["tenant_timezone"]
                ),
                "notify_window_minutes": context["notify_window_minutes"],
                "refund_terms": self._refund_terms(context),
            },
        )
        return self._send_email(
            to_email=to_email,
            subject=f"A spot opened up in {context['webinar_name']}",
            html_content=html_content,
        )

    def send_waitlist_confirmation(
        self,
        to_email: str,
        visitor_name: str,
        tenant_name: str,
        resource_label: str,
        position: int,
    ) -> bool:
        html_content = self._render_template(
            "waitlist_confirmation.html",
            {
                "visitor_name": visitor_name,
                "tenant_name": tenant_name,
                "resource_label": resource_label,
                "position": position,
                "notify_window_minutes": config.WAITLIST_NOTIFY_WINDOW_MINUTES,
            },
        )
        return self._send_email(
            to_email=to_email,
            subject=f"You're on the waitlist - {resource_label}",
            html_content=html_content,
        )

    def send_cancellation_confirmation(
        self,
        to_email: str,
        visitor_name: str,
        tenant_name: str,
        resource_label: str,
        refund_amount_cents: int,
        currency: str,
        is_full_refund: bool,
        refund_reason: str,
    ) -> bool:
        html_content = self._render_template(
            "cancellation_confirmation.html",
            {
                "visitor_name": visitor_name,
                "tenant_name": tenant_name,
                "resource_label": resource_label,
                "refund_amount_cents": refund_amount_cents,
                "refund_amount": format_money(refund_amount_cents, currency),
                "is_full_refund": is_full_refund,
                "refund_reason": refund_reason,
            },
        )
        return self._send_email(
            to_email=to_email,
            subject=f"Cancellation confirmed - {resource_label}",
            html_content=html_content,
        )


# Singleton instance
email_service = EmailService()
