"""Waitlist cascade for webinars, queued per tenant and product.

Same machine as the booking waitlist with two substitutions: a slot is free
while signups are below ``max_participants``, and the resource is gone once
every session of the webinar has ended.
"""

from datetime import datetime
from typing import Any, Optional

from app.models.product import Product
from app.models.tenant import Tenant
from app.models.waitlist import WebinarWaitlistEntry
from app.services.refund_policy import calculate_refund
from app.services.waitlist_cascade import (
    EntrySnapshot,
    ResourceType,
    WaitlistAnomaly,
    WaitlistCascadeEngine,
)
from app.services.webinar_schedule import all_sessions_ended, expand_webinar_sessions
from core.config import config


class WebinarWaitlistCascade(WaitlistCascadeEngine):
    entry_model = WebinarWaitlistEntry
    resource_type = ResourceType.WEBINAR

    async def _get_product(self, tenant_id: str, product_id: str) -> Product:
        product = await Product.get_by_id(self.db_session, tenant_id, product_id)
        if product is None:
            raise WaitlistAnomaly(f"product {product_id} not found for tenant {tenant_id}")
        return product

    async def _tenant_timezone(self, tenant_id: str) -> str:
        tenant: Optional[Tenant] = await Tenant.get_by_id(self.db_session, tenant_id)
        return tenant.timezone if tenant else config.DEFAULT_TIMEZONE

    async def is_past_resource(self, entry: EntrySnapshot, now: datetime) -> bool:
        product = await self._get_product(entry.tenant_id, entry.resource)
        sessions = expand_webinar_sessions(
            product.sessions, await self._tenant_timezone(entry.tenant_id)
        )
        return all_sessions_ended(sessions, now)

    async def has_free_slot(self, tenant_id: str, resource: str) -> bool:
        return await self.availability.remaining_capacity(tenant_id, resource) > 0

    async def build_claim_url(
        self, tenant: Tenant, resource: str, entry: EntrySnapshot
    ) -> str:
        return f"{tenant.landing_page_url}/webinar/{resource}"

    async def notification_context(
        self, tenant: Tenant, resource: str, expires_at: datetime
    ) -> dict[str, Any]:
        context = await super().notification_context(tenant, resource, expires_at)
        product = await self._get_product(tenant.id, resource)
        context["product_id"] = resource
        context["webinar_name"] = product.name

        # Refund terms if the seat is taken now and cancelled later; reported only
        sessions = expand_webinar_sessions(product.sessions, tenant.timezone)
        if sessions and product.price_cents:
            notified_at = expires_at - self.notify_window
            decision = calculate_refund(
                product.price_cents,
                sessions[0].start_time,
                tenant.cancellation_policy,
                now=notified_at,
            )
            context["price_cents"] = product.price_cents
            context["currency"] = tenant.currency
            context["refund_if_cancelled_cents"] = decision.amount_cents
            context["refund_reason"] = decision.reason
        return context
