"""Billing mode and pricing-interval resolution.

The provider has no flag marking the canonical pricing interval. An interval
counts as active when it carries both current-billing-period markers; their
values are never compared with the wall clock. The precedence below decides
the billing mode, the allocation amount and the price id used for usage.

Primary pass: one walk over the active intervals in order. Each interval is
checked for an allocation ("Credits" or "User Messages" pricing unit), then
for a price ("Augment Credits" > any other "Credit" price that is not an
included allocation > "User Message" / "Fractional Messages"). Each match
sets the billing mode.

Fallback passes (all intervals, latest start date wins) run only when the
primary pass found nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from usage_monitor.engine.errors import UnresolvablePriceError
from usage_monitor.engine.models import BillingMode
from usage_monitor.engine.timeutil import parse_utc

logger = logging.getLogger(__name__)

AUGMENT_CREDITS = "Augment Credits"
MESSAGE_PRICE_NAMES = ("User Message", "Fractional Messages")
INCLUDED_ALLOCATION = "Included Allocation"
INCLUDED_MESSAGES = "Included Allocation (User Messages)"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

Interval = dict[str, Any]


@dataclass(frozen=True)
class Resolution:
    """Outcome of classifying a subscription's pricing intervals."""

    billing_mode: BillingMode
    price_id: str
    allocation: int = 0

    @property
    def unit(self) -> str:
        return self.billing_mode.unit


# ── Field access on raw intervals ────────────────────────────────────────────


def is_active(interval: Interval) -> bool:
    """Presence of both period markers is the only activity signal."""
    return bool(
        interval.get("current_billing_period_start_date")
        and interval.get("current_billing_period_end_date")
    )


def active_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    return [p for p in intervals if is_active(p)]


def price_name(interval: Interval) -> str:
    return ((interval.get("price") or {}).get("price") or {}).get("name") or ""


def price_id(interval: Interval) -> str:
    return (interval.get("price") or {}).get("id") or ""


def pricing_unit(interval: Interval) -> str:
    allocation = interval.get("allocation") or {}
    return (allocation.get("pricing_unit") or {}).get("display_name") or ""


def allocation_amount(interval: Interval) -> int:
    """Integer part of the allocation's decimal amount, 0 when absent."""
    amount = str((interval.get("allocation") or {}).get("amount") or "")
    whole = amount.strip().split(".")[0]
    if not whole:
        return 0
    try:
        return int(whole)
    except ValueError:
        logger.debug("Ignoring non-numeric allocation amount %r", amount)
        return 0


def _start(interval: Interval) -> datetime:
    value = interval.get("start_date")
    return parse_utc(value) if value else _EPOCH


def latest(
    intervals: Iterable[Interval], predicate: Callable[[Interval], bool]
) -> Interval | None:
    """The matching interval with the latest start date (first one on ties)."""
    matches = [p for p in intervals if predicate(p)]
    if not matches:
        return None
    return max(matches, key=_start)


# ── Price classification rules ───────────────────────────────────────────────


def _is_augment_credits(interval: Interval) -> bool:
    return price_name(interval) == AUGMENT_CREDITS and bool(price_id(interval))


def _is_other_credits(interval: Interval) -> bool:
    name = price_name(interval)
    return "Credit" in name and INCLUDED_ALLOCATION not in name and bool(price_id(interval))


def _is_message_price(interval: Interval) -> bool:
    return price_name(interval) in MESSAGE_PRICE_NAMES and bool(price_id(interval))


PRICE_RULES: tuple[tuple[Callable[[Interval], bool], BillingMode], ...] = (
    (_is_augment_credits, BillingMode.CREDIT_POOL),
    (_is_other_credits, BillingMode.CREDIT_POOL),
    (_is_message_price, BillingMode.PER_MESSAGE),
)


# ── Resolution ───────────────────────────────────────────────────────────────


def _log_intervals(intervals: list[Interval]) -> None:
    for index, p in enumerate(intervals, start=1):
        logger.debug(
            "Interval %d: id=%s price_id=%s price_name=%r unit=%r allocation=%s active=%s",
            index,
            p.get("id"),
            price_id(p),
            price_name(p),
            pricing_unit(p),
            (p.get("allocation") or {}).get("amount"),
            is_active(p),
        )


def _primary_pass(
    active: list[Interval],
) -> tuple[BillingMode | None, int, str]:
    """Walk active intervals once, allocation rule then price rule per interval.

    Every match sets the mode, so the last matching interval decides it. An
    "Augment Credits" price replaces an earlier price chosen by a weaker rule;
    the other price rules only apply while no price is chosen.
    """
    mode: BillingMode | None = None
    allocation = 0
    current_price = ""
    augment_chosen = False

    for p in active:
        if p.get("allocation"):
            unit = pricing_unit(p)
            if "credits" in unit.lower():
                mode, allocation = BillingMode.CREDIT_POOL, allocation_amount(p)
            elif "User Messages" in unit:
                mode, allocation = BillingMode.PER_MESSAGE, allocation_amount(p)

        if _is_augment_credits(p):
            if not augment_chosen:
                current_price, augment_chosen = price_id(p), True
            mode = BillingMode.CREDIT_POOL
        elif not current_price and _is_other_credits(p):
            mode, current_price = BillingMode.CREDIT_POOL, price_id(p)
        elif not current_price and _is_message_price(p):
            mode, current_price = BillingMode.PER_MESSAGE, price_id(p)

    return mode, allocation, current_price


def _fallback_allocation(intervals: list[Interval]) -> tuple[BillingMode, int] | None:
    credits = latest(
        intervals, lambda p: bool(p.get("allocation")) and "Credits" in price_name(p)
    )
    if credits is not None and (credits.get("allocation") or {}).get("amount"):
        return BillingMode.CREDIT_POOL, allocation_amount(credits)

    messages = latest(
        intervals, lambda p: bool(p.get("allocation")) and price_name(p) == INCLUDED_MESSAGES
    )
    if messages is not None and (messages.get("allocation") or {}).get("amount"):
        return BillingMode.PER_MESSAGE, allocation_amount(messages)
    return None


def _fallback_price(intervals: list[Interval]) -> tuple[BillingMode, str] | None:
    for rule, mode in PRICE_RULES:
        match = latest(intervals, rule)
        if match is not None:
            return mode, price_id(match)
    return None


def resolve_intervals(
    intervals: list[Interval], subscription_id: str | None = None
) -> Resolution:
    """Classify the billing mode and pick the allocation and price id.

    The primary pass sets the mode from whichever active interval matched
    last. The fallback allocation and fallback price passes, when they find
    something, override it in that order. With no signal at all the mode
    stays per-message.

    Raises UnresolvablePriceError when no price id can be found.
    """
    _log_intervals(intervals)

    primary_mode, allocation, current_price = _primary_pass(active_intervals(intervals))
    mode = primary_mode or BillingMode.PER_MESSAGE
    if current_price:
        logger.debug("Active price id %s (%s)", current_price, mode.value)

    if allocation == 0:
        fallback_alloc = _fallback_allocation(intervals)
        if fallback_alloc is not None:
            mode, allocation = fallback_alloc
            logger.debug("Using latest historical allocation %d (%s)", allocation, mode.value)

    if not current_price:
        fallback_price = _fallback_price(intervals)
        if fallback_price is not None:
            mode, current_price = fallback_price
            logger.debug("Using latest historical price id %s (%s)", current_price, mode.value)

    if not current_price:
        raise UnresolvablePriceError(
            f"No resolvable price or subscription id (billing mode: {mode.value})",
            billing_mode=mode.value,
            subscription_id=subscription_id,
        )

    logger.info(
        "Resolved billing mode=%s unit=%s price_id=%s allocation=%d",
        mode.value,
        mode.unit,
        current_price,
        allocation,
    )
    return Resolution(billing_mode=mode, price_id=current_price, allocation=allocation)
