"""Tests for the refund proration policy."""

from datetime import datetime, timedelta, timezone

import pytest

from app.services.refund_policy import (
    CancellationPolicy,
    RefundDecision,
    RefundTier,
    calculate_refund,
    is_before_deadline,
)

NOW = datetime(2030, 3, 12, 10, 0, tzinfo=timezone.utc)


def starts_in(hours: float) -> datetime:
    return NOW + timedelta(hours=hours)


class TestCalculateRefund:
    """Tests for calculate_refund."""

    def test_no_payment(self):
        decision = calculate_refund(0, starts_in(1), CancellationPolicy(48), now=NOW)
        assert decision == RefundDecision(0, True, "No payment to refund")

    def test_full_refund_before_deadline(self):
        """Paid 10000, deadline 48h, session in 72h."""
        decision = calculate_refund(10000, starts_in(72), CancellationPolicy(48), now=NOW)
        assert decision.amount_cents == 10000
        assert decision.is_full_refund is True
        assert decision.reason == "Cancelled before deadline"

    def test_inside_deadline_without_tiers_refunds_nothing(self):
        """Paid 10000, deadline 48h, session in 10h."""
        decision = calculate_refund(10000, starts_in(10), CancellationPolicy(48), now=NOW)
        assert decision.amount_cents == 0
        assert decision.is_full_refund is False
        assert decision.reason == "Cancelled within 48 hours of start: no refund"

    def test_inside_deadline_is_never_full(self):
        policy = CancellationPolicy(
            48, tiers=(RefundTier(0.5, 75), RefundTier(0.1, 25))
        )
        decision = calculate_refund(10000, starts_in(10), policy, now=NOW)
        assert decision.amount_cents < 10000
        assert decision.is_full_refund is False

    def test_hundred_percent_tier_is_not_full(self):
        policy = CancellationPolicy(48, tiers=(RefundTier(0.0, 100),))
        decision = calculate_refund(10000, starts_in(10), policy, now=NOW)
        assert decision.amount_cents == 10000
        assert decision.is_full_refund is False
        assert decision.reason == "Cancelled within 48 hours of start: 100% refund"

    def test_boundary_is_inclusive(self):
        decision = calculate_refund(10000, starts_in(48), CancellationPolicy(48), now=NOW)
        assert decision.amount_cents == 10000
        assert decision.is_full_refund is True

    def test_just_inside_boundary(self):
        start = NOW + timedelta(hours=48) - timedelta(seconds=1)
        decision = calculate_refund(10000, start, CancellationPolicy(48), now=NOW)
        assert decision.is_full_refund is False

    def test_graduated_tiers(self):
        policy = CancellationPolicy.from_config(
            48,
            [{"min_ratio": 0.25, "percent": 25}, {"min_ratio": 0.5, "percent": 50}],
        )
        # ratio 30/48 = 0.625
        assert calculate_refund(10000, starts_in(30), policy, now=NOW).amount_cents == 5000
        # ratio 18/48 = 0.375
        decision = calculate_refund(10000, starts_in(18), policy, now=NOW)
        assert decision.amount_cents == 2500
        assert decision.reason == "Cancelled within 48 hours of start: 25% refund"
        # ratio 6/48 = 0.125
        assert calculate_refund(10000, starts_in(6), policy, now=NOW).amount_cents == 0

    def test_partial_amount_rounds_down(self):
        policy = CancellationPolicy(24, tiers=(RefundTier(0.0, 33),))
        decision = calculate_refund(1001, starts_in(1), policy, now=NOW)
        assert decision.amount_cents == 330

    def test_event_already_started(self):
        policy = CancellationPolicy(24, tiers=(RefundTier(0.0, 50),))
        decision = calculate_refund(1000, starts_in(-2), policy, now=NOW)
        assert decision.amount_cents == 0

    def test_zero_deadline_always_full(self):
        decision = calculate_refund(1000, starts_in(0), CancellationPolicy(0), now=NOW)
        assert decision.is_full_refund is True

    def test_naive_start_time_is_utc(self):
        start = (NOW + timedelta(hours=72)).replace(tzinfo=None)
        decision = calculate_refund(10000, start, CancellationPolicy(48), now=NOW)
        assert decision.is_full_refund is True

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            calculate_refund(-1, starts_in(72), CancellationPolicy(48), now=NOW)

    def test_pure(self):
        policy = CancellationPolicy(48)
        first = calculate_refund(10000, starts_in(10), policy, now=NOW)
        second = calculate_refund(10000, starts_in(10), policy, now=NOW)
        assert first == second


class TestIsBeforeDeadline:
    """Tests for is_before_deadline."""

    def test_before(self):
        assert is_before_deadline(starts_in(72), CancellationPolicy(48), now=NOW) is True

    def test_at_boundary(self):
        assert is_before_deadline(starts_in(48), CancellationPolicy(48), now=NOW) is True

    def test_after(self):
        assert is_before_deadline(starts_in(47), CancellationPolicy(48), now=NOW) is False


class TestCancellationPolicy:
    """Tests for policy construction."""

    def test_tiers_sorted_most_generous_first(self):
        policy = CancellationPolicy(
            24, tiers=(RefundTier(0.1, 10), RefundTier(0.5, 50))
        )
        assert [t.min_ratio for t in policy.tiers] == [0.5, 0.1]

    def test_from_config_without_tiers(self):
        policy = CancellationPolicy.from_config(24, None)
        assert policy.tiers == ()

    def test_invalid_percent(self):
        with pytest.raises(ValueError):
            RefundTier(0.5, 150)

    def test_invalid_ratio(self):
        with pytest.raises(ValueError):
            RefundTier(1.0, 50)

    def test_negative_deadline(self):
        with pytest.raises(ValueError):
            CancellationPolicy(-1)
