"""SMS service for texting waitlisted visitors via Twilio."""

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from core.config import config
from core.logging import get_logger

logger = get_logger(__name__)


class SMSService:
    """Service for sending SMS messages via Twilio."""

    def __init__(self):
        self.account_sid = config.TWILIO_ACCOUNT_SID
        self.auth_token = config.TWILIO_AUTH_TOKEN
        self.from_number = config.TWILIO_PHONE_NUMBER

        if self.account_sid and self.auth_token:
            self.client = Client(self.account_sid, self.auth_token)
            self.enabled = True
        else:
            self.client = None
            self.enabled = False

    def send_sms(self, to_number: str, message: str, max_length: int = 320) -> dict:
        """
        Send an SMS message to a single phone number.

        Args:
            to_number: Phone number in E.164 format (e.g., +61412345678)
            message: Message content
            max_length: Maximum message length (two SMS segments by default)

        Returns:
            dict with status and message_sid or error

        Raises:
            ValueError: If SMS service is not enabled or the number is not E.164
        """
        if not self.enabled:
            raise ValueError(
                "SMS service is not enabled. Configure Twilio credentials in environment variables."
            )

        if not to_number.startswith("+"):
            raise ValueError(f"Phone number must be in E.164 format: {to_number}")

        if len(message) > max_length:
            message = message[:max_length - 3] + "..."
            logger.warning(f"Message truncated to {max_length} characters for SMS")

        try:
            sms = self.client.messages.create(
                body=message, from_=self.from_number, to=to_number
            )
            logger.info(f"SMS sent successfully to {to_number}: {sms.sid}")
            return {"status": "sent", "message_sid": sms.sid, "to": to_number}

        except TwilioRestException as e:
            logger.error(f"Failed to send SMS to {to_number}: {e.msg}")
            return {
                "status": "failed",
                "error": e.msg,
                "error_code": e.code,
                "to": to_number,
            }


# Singleton instance
sms_service = SMSService()
