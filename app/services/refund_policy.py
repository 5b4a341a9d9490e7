"""Deadline-based refund proration for visitor-initiated cancellations.

A cancellation made at least ``cancellation_deadline_hours`` before the event
starts is refunded in full. Inside the deadline the tenant's tier curve
applies: each tier names the smallest ``hours_until_start / deadline`` ratio
it covers and the percentage refunded. With no tiers configured nothing is
refunded inside the deadline.

Everything here is pure. Issuing the refund against Stripe is a separate,
explicit step taken by the cancellation service.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from app.utils.datetime_utils import ensure_utc, utcnow

FULL_REFUND_PERCENT = 100
NO_REFUND_PERCENT = 0


@dataclass(frozen=True)
class RefundTier:
    """Refund ``percent`` when the lead-time ratio is at least ``min_ratio``."""

    min_ratio: float
    percent: int

    def __post_init__(self):
        if not 0 <= self.percent <= FULL_REFUND_PERCENT:
            raise ValueError(f"Refund tier percent must be 0-100, got {self.percent}")
        if not 0 <= self.min_ratio < 1:
            raise ValueError(
                f"Refund tier min_ratio must be in [0, 1), got {self.min_ratio}"
            )


@dataclass(frozen=True)
class CancellationPolicy:
    """Per-tenant cancellation policy."""

    cancellation_deadline_hours: int = 24
    tiers: tuple[RefundTier, ...] = ()

    def __post_init__(self):
        if self.cancellation_deadline_hours < 0:
            raise ValueError("cancellation_deadline_hours must not be negative")
        # Highest ratio first so the first match is the most generous tier
        object.__setattr__(
            self,
            "tiers",
            tuple(sorted(self.tiers, key=lambda t: t.min_ratio, reverse=True)),
        )

    @classmethod
    def from_config(
        cls,
        cancellation_deadline_hours: int,
        tiers: Optional[Iterable[dict[str, Any]]] = None,
    ) -> "CancellationPolicy":
        """Build a policy from the tenant's stored JSON tier list."""
        return cls(
            cancellation_deadline_hours=cancellation_deadline_hours,
            tiers=tuple(
                RefundTier(min_ratio=float(t["min_ratio"]), percent=int(t["percent"]))
                for t in (tiers or [])
            ),
        )

    def percent_below_deadline(self, hours_until_start: float) -> int:
        if self.cancellation_deadline_hours == 0 or hours_until_start < 0:
            return NO_REFUND_PERCENT
        ratio = hours_until_start / self.cancellation_deadline_hours
        for tier in self.tiers:
            if ratio >= tier.min_ratio:
                return tier.percent
        return NO_REFUND_PERCENT


@dataclass(frozen=True)
class RefundDecision:
    """Outcome of the refund policy. Never persisted."""

    amount_cents: int
    is_full_refund: bool
    reason: str


def hours_until(event_start_time: datetime, now: Optional[datetime] = None) -> float:
    now = ensure_utc(now) if now is not None else utcnow()
    return (ensure_utc(event_start_time) - now).total_seconds() / 3600


def is_before_deadline(
    event_start_time: datetime,
    policy: CancellationPolicy,
    now: Optional[datetime] = None,
) -> bool:
    """True when cancelling now still earns a full refund (boundary inclusive)."""
    return hours_until(event_start_time, now) >= policy.cancellation_deadline_hours


def calculate_refund(
    paid_amount_cents: int,
    event_start_time: datetime,
    policy: CancellationPolicy,
    now: Optional[datetime] = None,
) -> RefundDecision:
    """Decide how much of ``paid_amount_cents`` goes back to the visitor."""
    if paid_amount_cents < 0:
        raise ValueError("paid_amount_cents must not be negative")

    if paid_amount_cents == 0:
        return RefundDecision(0, True, "No payment to refund")

    hours = hours_until(event_start_time, now)
    if hours >= policy.cancellation_deadline_hours:
        return RefundDecision(paid_amount_cents, True, "Cancelled before deadline")

    percent = policy.percent_below_deadline(hours)
    deadline = policy.cancellation_deadline_hours
    if percent == NO_REFUND_PERCENT:
        return RefundDecision(
            0, False, f"Cancelled within {deadline} hours of start: no refund"
        )

    # Inside the deadline a refund is never reported as full, even at 100%
    amount_cents = paid_amount_cents * percent // FULL_REFUND_PERCENT
    return RefundDecision(
        amount_cents,
        False,
        f"Cancelled within {deadline} hours of start: {percent}% refund",
    )
