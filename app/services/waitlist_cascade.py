"""Scan-and-cascade engine shared by the booking and webinar waitlists.

One pass walks every active entry and, per entry:

1. expires it outright when its resource is gone (date in the past, or every
   webinar session over) without cascading,
2. expires a notified entry whose hold lapsed, then
3. cascades: offers the freed slot to the oldest waiting entry of the same
   queue, at most once per queue per pass.

A queue with waiting entries and nobody notified is also offered a slot
when one is free, so a slot freed without a cascade is not stranded.

Every state change is a single-entry write conditioned on the entry's current
status, so overlapping passes and real-time cancellation triggers can run
side by side without locks. The per-pass set of notified queues only saves
redundant oracle and notifier calls.
"""

import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol, Type

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.tenant import Tenant
from app.models.waitlist import WaitlistEntryMixin, WaitlistStatus
from app.utils.datetime_utils import ensure_utc, utcnow
from core.config import config
from core.logging import get_logger

logger = get_logger(__name__)

NOTIFY_WINDOW = timedelta(minutes=config.WAITLIST_NOTIFY_WINDOW_MINUTES)


class ResourceType(str, enum.Enum):
    """Which waitlist flavour a pass or notification belongs to."""

    BOOKING = "booking"
    WEBINAR = "webinar"


class CascadeOutcome(str, enum.Enum):
    """Result of one cascade attempt for a queue."""

    NOTIFIED = "notified"
    ALREADY_NOTIFIED = "already_notified"  # Queue was cascaded earlier this pass
    NO_AVAILABILITY = "no_availability"
    NO_WAITING_ENTRY = "no_waiting_entry"
    CONFLICT = "conflict"  # Lost the conditional write to another writer
    MISSING_RESOURCE = "missing_resource"


class WaitlistAnomaly(Exception):
    """Stored data that breaks an invariant; the entry is skipped, not fixed."""


class AvailabilityOracle(Protocol):
    async def has_available_slots(self, tenant_id: str, day: Any) -> bool: ...

    async def remaining_capacity(self, tenant_id: str, product_id: str) -> int: ...


class Notifier(Protocol):
    def notify(
        self,
        recipient_email: str,
        recipient_name: str,
        claim_url: str,
        context: dict[str, Any],
    ) -> None: ...


@dataclass
class CascadeSummary:
    """Counters reported by one pass over one resource type."""

    expired: int = 0
    past_cleaned: int = 0
    notified: int = 0
    errors: int = 0
    anomalies: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class CascadePass:
    """State scoped to a single pass or a single real-time trigger."""

    now: datetime = field(default_factory=utcnow)
    notified_keys: set[str] = field(default_factory=set)
    # Queues seen with a notified entry, and queues already swept this pass
    held_keys: set[str] = field(default_factory=set)
    swept_keys: set[str] = field(default_factory=set)

    def already_notified(self, key: str) -> bool:
        return key in self.notified_keys

    def mark_notified(self, key: str) -> None:
        self.notified_keys.add(key)


@dataclass(frozen=True)
class EntrySnapshot:
    """Values read from a scanned entry, detached from the ORM session."""

    id: str
    tenant_id: str
    resource: Any
    status: WaitlistStatus
    queued_at: datetime
    expires_at: Optional[datetime]
    visitor_name: str
    visitor_email: str
    visitor_phone: Optional[str]

    @classmethod
    def of(cls, entry: WaitlistEntryMixin) -> "EntrySnapshot":
        return cls(
            id=entry.id,
            tenant_id=entry.tenant_id,
            resource=entry.resource,
            status=WaitlistStatus(entry.status),
            queued_at=ensure_utc(entry.queued_at),
            expires_at=ensure_utc(entry.expires_at),
            visitor_name=entry.visitor_name,
            visitor_email=entry.visitor_email,
            visitor_phone=entry.visitor_phone,
        )


def pick_next_waiting(entries: list[Any]) -> Optional[Any]:
    """Head of the queue: earliest queued_at, id as the tie-break."""
    waiting = [e for e in entries if e.status == WaitlistStatus.WAITING]
    if not waiting:
        return None
    return min(waiting, key=lambda e: (ensure_utc(e.queued_at), e.id))


class WaitlistCascadeEngine:
    """Template for one waitlist flavour. Instantiate per pass or trigger."""

    entry_model: Type[WaitlistEntryMixin]
    resource_type: ResourceType

    def __init__(
        self,
        db_session: AsyncSession,
        availability: AvailabilityOracle,
        notifier: Notifier,
        notify_window: timedelta = NOTIFY_WINDOW,
    ):
        self.db_session = db_session
        self.availability = availability
        self.notifier = notifier
        self.notify_window = notify_window

    # ----- Flavour hooks -----

    def resource_key(self, tenant_id: str, resource: Any) -> str:
        return f"{tenant_id}:{resource}"

    async def is_past_resource(self, entry: EntrySnapshot, now: datetime) -> bool:
        raise NotImplementedError

    async def has_free_slot(self, tenant_id: str, resource: Any) -> bool:
        raise NotImplementedError

    async def build_claim_url(
        self, tenant: Tenant, resource: Any, entry: EntrySnapshot
    ) -> str:
        raise NotImplementedError

    async def notification_context(
        self, tenant: Tenant, resource: Any, expires_at: datetime
    ) -> dict[str, Any]:
        return {
            "resource_type": self.resource_type.value,
            "tenant_name": tenant.name,
            "tenant_timezone": tenant.timezone,
            "expires_at": expires_at.isoformat(),
            "notify_window_minutes": int(self.notify_window.total_seconds() // 60),
        }

    # ----- Scan -----

    async def run_pass(self, cascade_pass: Optional[CascadePass] = None) -> CascadeSummary:
        """Scan every active entry once. Never raises for a single entry."""
        cascade_pass = cascade_pass or CascadePass()
        summary = CascadeSummary()

        try:
            entries = [
                EntrySnapshot.of(e)
                for e in await self.entry_model.scan_active(self.db_session)
            ]
        except Exception as e:
            logger.error(
                f"Failed to scan {self.resource_type.value} waitlist: {e}",
                exc_info=True,
            )
            await self.db_session.rollback()
            summary.errors += 1
            return summary

        cascade_pass.held_keys.update(
            self.resource_key(e.tenant_id, e.resource)
            for e in entries
            if e.status == WaitlistStatus.NOTIFIED
        )
        logger.info(
            f"Processing {len(entries)} active {self.resource_type.value} waitlist entries"
        )

        for entry in entries:
            await self._process_entry(entry, cascade_pass, summary)

        logger.info(
            f"{self.resource_type.value.capitalize()} waitlist pass complete: "
            f"{summary.as_dict()}"
        )
        return summary

    async def _process_entry(
        self, entry: EntrySnapshot, cascade_pass: CascadePass, summary: CascadeSummary
    ) -> None:
        now = cascade_pass.now
        try:
            if entry.status not in (WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED):
                return

            # The resource itself is gone: not a freed slot, so no cascade
            if await self.is_past_resource(entry, now):
                if await self._expire(entry):
                    summary.past_cleaned += 1
                return

            if entry.status == WaitlistStatus.WAITING:
                await self._sweep_queue(entry, cascade_pass, summary)
                return

            if entry.expires_at is None:
                raise WaitlistAnomaly(
                    f"notified entry {entry.id} has no expires_at"
                )

            if entry.expires_at >= now:
                return

            if not await self._expire(entry):
                return
            summary.expired += 1

            outcome = await self.cascade(entry.tenant_id, entry.resource, cascade_pass)
            if outcome == CascadeOutcome.NOTIFIED:
                summary.notified += 1

        except WaitlistAnomaly as e:
            logger.warning(
                f"Skipping {self.resource_type.value} waitlist entry {entry.id}: {e}"
            )
            summary.anomalies += 1
        except Exception as e:
            # Left untouched; the next pass retries it
            logger.error(
                f"Error processing {self.resource_type.value} waitlist entry "
                f"{entry.id}: {e}",
                exc_info=True,
            )
            await self.db_session.rollback()
            summary.errors += 1

    async def _sweep_queue(
        self, entry: EntrySnapshot, cascade_pass: CascadePass, summary: CascadeSummary
    ) -> None:
        """Offer a free slot to a queue that has nobody holding one.

        Covers slots freed without a cascade, e.g. a real-time trigger that
        failed. Runs at most once per queue per pass.
        """
        key = self.resource_key(entry.tenant_id, entry.resource)
        if key in cascade_pass.held_keys or key in cascade_pass.swept_keys:
            return
        cascade_pass.swept_keys.add(key)

        outcome = await self.cascade(entry.tenant_id, entry.resource, cascade_pass)
        if outcome == CascadeOutcome.NOTIFIED:
            summary.notified += 1

    async def _expire(self, entry: EntrySnapshot) -> bool:
        expired = await self.entry_model.conditional_update(
            self.db_session,
            entry.tenant_id,
            entry.resource,
            entry.id,
            expected_status=entry.status,
            status=WaitlistStatus.EXPIRED,
            expires_at=None,
        )
        if not expired:
            logger.info(
                f"{self.resource_type.value.capitalize()} waitlist entry {entry.id} "
                f"changed since the scan, leaving it"
            )
        return expired

    # ----- Cascade -----

    async def cascade(
        self,
        tenant_id: str,
        resource: Any,
        cascade_pass: Optional[CascadePass] = None,
    ) -> CascadeOutcome:
        """Offer a freed slot on one queue to its oldest waiting entry.

        Also the entry point for real-time triggers such as a visitor
        cancelling a booking.
        """
        cascade_pass = cascade_pass or CascadePass()
        key = self.resource_key(tenant_id, resource)

        if cascade_pass.already_notified(key):
            return CascadeOutcome.ALREADY_NOTIFIED

        tenant = await Tenant.get_by_id(self.db_session, tenant_id)
        if not tenant:
            logger.warning(f"Cascade for {key} skipped: tenant not found")
            return CascadeOutcome.MISSING_RESOURCE

        if not await self.has_free_slot(tenant_id, resource):
            logger.debug(f"No free slot for {key}, not cascading")
            return CascadeOutcome.NO_AVAILABILITY

        waiting = await self.entry_model.get_waiting(self.db_session, tenant_id, resource)
        next_entry = pick_next_waiting(waiting)
        if next_entry is None:
            return CascadeOutcome.NO_WAITING_ENTRY
        candidate = EntrySnapshot.of(next_entry)

        now = cascade_pass.now
        expires_at = now + self.notify_window
        claimed = await self.entry_model.conditional_update(
            self.db_session,
            tenant_id,
            resource,
            candidate.id,
            expected_status=WaitlistStatus.WAITING,
            status=WaitlistStatus.NOTIFIED,
            notified_at=now,
            expires_at=expires_at,
        )
        if not claimed:
            logger.info(f"Waitlist entry {candidate.id} for {key} claimed elsewhere")
            return CascadeOutcome.CONFLICT

        cascade_pass.mark_notified(key)
        await self._dispatch(tenant, resource, candidate, expires_at)
        logger.info(
            f"Notified {candidate.visitor_email} for {self.resource_type.value} {key}"
        )
        return CascadeOutcome.NOTIFIED

    async def _dispatch(
        self,
        tenant: Tenant,
        resource: Any,
        entry: EntrySnapshot,
        expires_at: datetime,
    ) -> None:
        # The hold stands whatever happens here
        try:
            claim_url = await self.build_claim_url(tenant, resource, entry)
            context = await self.notification_context(tenant, resource, expires_at)
            if entry.visitor_phone:
                context["visitor_phone"] = entry.visitor_phone
            self.notifier.notify(entry.visitor_email, entry.visitor_name, claim_url, context)
        except Exception as e:
            logger.error(
                f"Failed to dispatch waitlist notification for entry {entry.id}: {e}",
                exc_info=True,
            )
