"""Stripe service: read what a visitor paid and refund it."""

from typing import Optional

import stripe

from core.config import config as settings
from core.logging import get_logger

logger = get_logger(__name__)

# Initialize Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY


class StripeService:
    """Service for interacting with Stripe API."""

    # ============== Payment Intents ==============

    @staticmethod
    async def get_payment_intent(payment_intent_id: str) -> dict:
        """Get payment intent details."""
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
            return {
                "id": intent.id,
                "status": intent.status,
                "amount": intent.amount,
                "currency": intent.currency,
            }
        except stripe.error.StripeError as e:
            logger.error(f"Failed to get payment intent {payment_intent_id}: {e}")
            raise

    # ============== Refunds ==============

    @staticmethod
    async def create_refund(
        payment_intent_id: str,
        amount_cents: Optional[int] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict:
        """Refund a payment; omit ``amount_cents`` for a full refund.

        ``idempotency_key`` makes a retried cancellation reuse the first refund.
        """
        try:
            refund_params = {"payment_intent": payment_intent_id}
            if amount_cents:
                refund_params["amount"] = amount_cents
            if idempotency_key:
                refund_params["idempotency_key"] = idempotency_key

            refund = stripe.Refund.create(**refund_params)
            logger.info(f"Created refund: {refund.id}")

            return {
                "id": refund.id,
                "status": refund.status,
                "amount": refund.amount,
            }
        except stripe.error.StripeError as e:
            logger.error(f"Failed to create refund: {e}")
            raise
