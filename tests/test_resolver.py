"""Tests for billing mode and pricing-interval resolution."""

from __future__ import annotations

import pytest

from tests.conftest import make_interval
from usage_monitor.engine.errors import UnresolvablePriceError
from usage_monitor.engine.models import BillingMode
from usage_monitor.engine.resolver import (
    allocation_amount,
    is_active,
    latest,
    resolve_intervals,
)


# ── Field helpers ────────────────────────────────────────────────────────────


class TestIntervalHelpers:
    def test_active_requires_both_markers(self) -> None:
        p = make_interval("pi", "Augment Credits", "price", active=True)
        assert is_active(p)
        del p["current_billing_period_end_date"]
        assert not is_active(p)

    def test_active_ignores_marker_values(self) -> None:
        p = make_interval("pi", "Augment Credits", "price")
        p["current_billing_period_start_date"] = "1999-01-01T00:00:00Z"
        p["current_billing_period_end_date"] = "1999-02-01T00:00:00Z"
        assert is_active(p)

    def test_allocation_amount_integer_part(self) -> None:
        p = make_interval("pi", "x", "price", pricing_unit="Credits", amount="600.75")
        assert allocation_amount(p) == 600

    def test_allocation_amount_missing(self) -> None:
        assert allocation_amount(make_interval("pi", "x", "price")) == 0

    def test_latest_picks_latest_start(self) -> None:
        old = make_interval("old", "A", "p1", start="2023-01-01T00:00:00Z")
        new = make_interval("new", "A", "p2", start="2024-06-01T00:00:00Z")
        assert latest([new, old], lambda p: True)["id"] == "new"
        assert latest([old, new], lambda p: True)["id"] == "new"

    def test_latest_none_when_no_match(self) -> None:
        assert latest([make_interval("a", "A", "p")], lambda p: False) is None


# ── Primary pass ─────────────────────────────────────────────────────────────


class TestPrimaryPass:
    def test_active_credit_pool(self, credit_intervals) -> None:
        r = resolve_intervals(credit_intervals)
        assert r.billing_mode is BillingMode.CREDIT_POOL
        assert r.unit == "Credits"
        assert r.price_id == "price_credits"
        assert r.allocation == 600

    def test_credits_unit_case_insensitive(self) -> None:
        intervals = [
            make_interval("a", "Included Allocation (Credits)", "p_alloc",
                          active=True, pricing_unit="augment credits", amount="1000"),
            make_interval("b", "Augment Credits", "p_credits", active=True),
        ]
        r = resolve_intervals(intervals)
        assert r.billing_mode is BillingMode.CREDIT_POOL
        assert r.allocation == 1000

    def test_per_message(self) -> None:
        intervals = [
            make_interval("a", "Included Allocation (User Messages)", "p_alloc",
                          active=True, pricing_unit="User Messages", amount="50.00"),
            make_interval("b", "User Message", "p_msg", active=True),
        ]
        r = resolve_intervals(intervals)
        assert r.billing_mode is BillingMode.PER_MESSAGE
        assert r.unit == "User Messages"
        assert r.price_id == "p_msg"
        assert r.allocation == 50

    def test_fractional_messages_price(self) -> None:
        intervals = [make_interval("b", "Fractional Messages", "p_frac", active=True)]
        r = resolve_intervals(intervals)
        assert r.price_id == "p_frac"
        assert r.billing_mode is BillingMode.PER_MESSAGE

    def test_last_active_allocation_wins(self) -> None:
        intervals = [
            make_interval("a", "Included Allocation (Credits)", "p1",
                          active=True, pricing_unit="Credits", amount="100"),
            make_interval("b", "Included Allocation (Credits)", "p2",
                          active=True, pricing_unit="Credits", amount="200"),
            make_interval("c", "Augment Credits", "p_credits", active=True),
        ]
        assert resolve_intervals(intervals).allocation == 200

    def test_augment_credits_beats_earlier_credit_price(self) -> None:
        intervals = [
            make_interval("a", "Bonus Credit Pack", "p_bonus", active=True),
            make_interval("b", "Augment Credits", "p_augment", active=True),
        ]
        assert resolve_intervals(intervals).price_id == "p_augment"

    def test_first_augment_credits_wins(self) -> None:
        intervals = [
            make_interval("a", "Augment Credits", "p_first", active=True),
            make_interval("b", "Augment Credits", "p_second", active=True),
        ]
        assert resolve_intervals(intervals).price_id == "p_first"

    def test_earlier_message_price_keeps_priority_over_credit_price(self) -> None:
        intervals = [
            make_interval("a", "User Message", "p_msg", active=True),
            make_interval("b", "Bonus Credit Pack", "p_bonus", active=True),
        ]
        r = resolve_intervals(intervals)
        assert r.price_id == "p_msg"
        assert r.billing_mode is BillingMode.PER_MESSAGE

    def test_later_credit_allocation_sets_mode_after_message_price(self) -> None:
        intervals = [
            make_interval("a", "User Message", "p_msg", active=True),
            make_interval("b", "Included Allocation (Credits)", "p_alloc",
                          active=True, pricing_unit="Credits", amount="600"),
        ]
        r = resolve_intervals(intervals)
        assert r.billing_mode is BillingMode.CREDIT_POOL
        assert r.unit == "Credits"
        assert r.price_id == "p_msg"
        assert r.allocation == 600

    def test_later_message_price_sets_mode_after_credit_allocation(self) -> None:
        intervals = [
            make_interval("a", "Included Allocation (Credits)", "p_alloc",
                          active=True, pricing_unit="Credits", amount="600"),
            make_interval("b", "User Message", "p_msg", active=True),
        ]
        r = resolve_intervals(intervals)
        assert r.billing_mode is BillingMode.PER_MESSAGE
        assert r.price_id == "p_msg"
        assert r.allocation == 600

    def test_later_message_allocation_sets_mode_after_augment_credits(self) -> None:
        intervals = [
            make_interval("a", "Augment Credits", "p_credits", active=True),
            make_interval("b", "Included Allocation (User Messages)", "p_alloc",
                          active=True, pricing_unit="User Messages", amount="50"),
        ]
        r = resolve_intervals(intervals)
        assert r.billing_mode is BillingMode.PER_MESSAGE
        assert r.unit == "User Messages"
        assert r.price_id == "p_credits"
        assert r.allocation == 50

    def test_later_augment_credits_sets_mode_after_message_allocation(self) -> None:
        intervals = [
            make_interval("a", "Included Allocation (User Messages)", "p_alloc",
                          active=True, pricing_unit="User Messages", amount="50"),
            make_interval("b", "Augment Credits", "p_credits", active=True),
        ]
        r = resolve_intervals(intervals)
        assert r.billing_mode is BillingMode.CREDIT_POOL
        assert r.price_id == "p_credits"
        assert r.allocation == 50

    def test_augment_credits_replaces_earlier_message_price(self) -> None:
        intervals = [
            make_interval("a", "User Message", "p_msg", active=True),
            make_interval("b", "Augment Credits", "p_credits", active=True),
        ]
        r = resolve_intervals(intervals)
        assert r.price_id == "p_credits"
        assert r.billing_mode is BillingMode.CREDIT_POOL

    def test_included_allocation_never_a_usage_price(self) -> None:
        intervals = [
            make_interval("a", "Included Allocation (Credits)", "p_alloc",
                          active=True, pricing_unit="Credits", amount="600"),
            make_interval("b", "User Message", "p_msg", active=True),
        ]
        r = resolve_intervals(intervals)
        assert r.price_id == "p_msg"

    def test_inactive_intervals_ignored_in_primary_pass(self) -> None:
        intervals = [
            make_interval("old", "Augment Credits", "p_old", start="2023-01-01T00:00:00Z"),
            make_interval("cur", "User Message", "p_msg", active=True),
        ]
        r = resolve_intervals(intervals)
        assert r.price_id == "p_msg"
        assert r.billing_mode is BillingMode.PER_MESSAGE


# ── Fallback passes ──────────────────────────────────────────────────────────


class TestFallbacks:
    def test_latest_historical_credit_allocation(self) -> None:
        intervals = [
            make_interval("a", "Included Allocation (Credits)", "p1",
                          start="2023-01-01T00:00:00Z", pricing_unit="Credits", amount="100"),
            make_interval("b", "Included Allocation (Credits)", "p2",
                          start="2024-05-01T00:00:00Z", pricing_unit="Credits", amount="900"),
            make_interval("c", "Augment Credits", "p_credits", start="2024-05-01T00:00:00Z"),
        ]
        r = resolve_intervals(intervals)
        assert r.allocation == 900
        assert r.billing_mode is BillingMode.CREDIT_POOL
        assert r.price_id == "p_credits"

    def test_historical_message_allocation(self) -> None:
        intervals = [
            make_interval("a", "Included Allocation (User Messages)", "p1",
                          start="2024-01-01T00:00:00Z", pricing_unit="User Messages", amount="300"),
            make_interval("b", "User Message", "p_msg", start="2024-01-01T00:00:00Z"),
        ]
        r = resolve_intervals(intervals)
        assert r.allocation == 300
        assert r.billing_mode is BillingMode.PER_MESSAGE

    def test_latest_historical_price(self) -> None:
        intervals = [
            make_interval("a", "Augment Credits", "p_old", start="2023-01-01T00:00:00Z"),
            make_interval("b", "Augment Credits", "p_new", start="2024-02-01T00:00:00Z"),
        ]
        assert resolve_intervals(intervals).price_id == "p_new"

    def test_fallback_price_preference_order(self) -> None:
        intervals = [
            make_interval("a", "User Message", "p_msg", start="2024-09-01T00:00:00Z"),
            make_interval("b", "Legacy Credit", "p_credit", start="2023-01-01T00:00:00Z"),
        ]
        r = resolve_intervals(intervals)
        assert r.price_id == "p_credit"
        assert r.billing_mode is BillingMode.CREDIT_POOL

    def test_no_allocation_anywhere(self) -> None:
        r = resolve_intervals([make_interval("a", "User Message", "p_msg")])
        assert r.allocation == 0
        assert r.billing_mode is BillingMode.PER_MESSAGE

    def test_no_price_raises(self) -> None:
        intervals = [make_interval("a", "Included Allocation (Credits)", "p_alloc",
                                   active=True, pricing_unit="Credits", amount="600")]
        with pytest.raises(UnresolvablePriceError) as exc:
            resolve_intervals(intervals, subscription_id="sub_9")
        assert exc.value.billing_mode == "credit-pool"
        assert exc.value.subscription_id == "sub_9"
        assert "credit-pool" in str(exc.value)

    def test_empty_intervals_raise_with_per_message_fallback(self) -> None:
        with pytest.raises(UnresolvablePriceError) as exc:
            resolve_intervals([])
        assert exc.value.billing_mode == "per-message"

    def test_price_without_id_is_skipped(self) -> None:
        intervals = [make_interval("a", "Augment Credits", "", active=True)]
        with pytest.raises(UnresolvablePriceError):
            resolve_intervals(intervals)


class TestDeterminism:
    def test_same_input_same_resolution(self, credit_intervals) -> None:
        assert resolve_intervals(credit_intervals) == resolve_intervals(credit_intervals)
