"""Waitlist cascade for single bookings, queued per tenant and date."""

from datetime import date, datetime
from typing import Any

from app.models.tenant import Tenant
from app.models.waitlist import WaitlistEntry
from app.services.waitlist_cascade import (
    EntrySnapshot,
    ResourceType,
    WaitlistCascadeEngine,
)


class BookingWaitlistCascade(WaitlistCascadeEngine):
    """A slot is free when the tenant's calendar has an open slot that day."""

    entry_model = WaitlistEntry
    resource_type = ResourceType.BOOKING

    def resource_key(self, tenant_id: str, resource: date) -> str:
        return f"{tenant_id}:{resource.isoformat()}"

    async def is_past_resource(self, entry: EntrySnapshot, now: datetime) -> bool:
        # Compared against the UTC calendar date of the pass
        return entry.resource < now.date()

    async def has_free_slot(self, tenant_id: str, resource: date) -> bool:
        return await self.availability.has_available_slots(tenant_id, resource)

    async def build_claim_url(
        self, tenant: Tenant, resource: date, entry: EntrySnapshot
    ) -> str:
        return f"{tenant.landing_page_url}?date={resource.isoformat()}&waitlist={entry.id}"

    async def notification_context(
        self, tenant: Tenant, resource: date, expires_at: datetime
    ) -> dict[str, Any]:
        context = await super().notification_context(tenant, resource, expires_at)
        context["date"] = resource.isoformat()
        return context
