"""End-to-end usage resolution.

Data flow: token -> subscription document -> interval resolution ->
ledger balance (credit-pool only) -> usage series -> reconciliation ->
immutable UsageSnapshot. The resolver keeps no state between calls; every
call fetches fresh documents and returns a new snapshot or raises.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from usage_monitor.engine.aggregator import aggregate_usage
from usage_monitor.engine.credentials import extract_token
from usage_monitor.engine.errors import (
    LedgerUnavailableError,
    MissingSubscriptionError,
    SnapshotConsistencyError,
    UnresolvablePriceError,
)
from usage_monitor.engine.models import (
    Allocation,
    BillingMode,
    BillingPeriod,
    Price,
    PriceInterval,
    SubscriptionInfo,
    UsageSnapshot,
)
from usage_monitor.engine.reconciler import AllowancePolicy, parse_ledger_balance, reconcile
from usage_monitor.engine.resolver import (
    active_intervals,
    price_id,
    price_name,
    pricing_unit,
    resolve_intervals,
)
from usage_monitor.engine.timeutil import DEFAULT_OFFSET_HOURS, to_display_time
from usage_monitor.portal.client import PortalClient, PortalError, PortalOfflineError

logger = logging.getLogger(__name__)


def _cycle_day(value: Any) -> int:
    """Billing-cycle day as an int; 0 when missing or not numeric."""
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        logger.debug("Ignoring non-numeric billing cycle day %r", value)
        return 0


def normalize_interval(raw: dict[str, Any], offset_hours: int = DEFAULT_OFFSET_HOURS) -> PriceInterval:
    """Flatten a provider pricing interval into display form."""
    inner = (raw.get("price") or {}).get("price") or {}
    allocation = None
    if raw.get("allocation"):
        alloc = raw["allocation"]
        allocation = Allocation(
            amount=str(alloc.get("amount") or ""),
            cadence=str(alloc.get("cadence") or ""),
            pricing_unit=pricing_unit(raw),
        )
    return PriceInterval(
        id=str(raw.get("id") or ""),
        name=price_name(raw),
        start_date=to_display_time(raw.get("start_date"), offset_hours),
        end_date=to_display_time(raw.get("end_date"), offset_hours),
        billing_cycle_day=_cycle_day(raw.get("billing_cycle_day")),
        allocation=allocation,
        price=Price(
            id=price_id(raw),
            name=price_name(raw),
            unit_amount=str((inner.get("unit_config") or {}).get("unit_amount") or "0.00"),
            currency=str(inner.get("currency") or ""),
            model_type=str(inner.get("model_type") or ""),
        ),
    )


def current_billing_period(
    intervals: list[dict[str, Any]], offset_hours: int = DEFAULT_OFFSET_HOURS
) -> BillingPeriod | None:
    """Period markers of the first active interval, if any."""
    active = active_intervals(intervals)
    if not active:
        return None
    first = active[0]
    return BillingPeriod(
        start=to_display_time(first["current_billing_period_start_date"], offset_hours),
        end=to_display_time(first["current_billing_period_end_date"], offset_hours),
    )


class UsageResolver:
    """Resolves a usage snapshot for one portal token per call."""

    def __init__(
        self,
        portal: PortalClient,
        policy: AllowancePolicy | None = None,
        offset_hours: int = DEFAULT_OFFSET_HOURS,
    ) -> None:
        self.portal = portal
        self.policy = policy or AllowancePolicy()
        self.offset_hours = offset_hours

    def _subscription(self, token: str) -> dict[str, Any]:
        body = self.portal.subscription(token)
        data = body.get("data")
        if not isinstance(data, list) or not data or not data[0]:
            raise MissingSubscriptionError("Subscription response contains no subscription")
        return data[0]

    def _ledger_balance(self, token: str) -> int | None:
        """Credit balance from the ledger, or None when it cannot be obtained."""
        try:
            body = self.portal.customer(token)
            customer = body.get("customer") or {}
            customer_id = customer.get("id") or ""
            units = customer.get("ledger_pricing_units") or []
            pricing_unit_id = (units[0] or {}).get("id") if units else ""
            if not customer_id or not pricing_unit_id:
                raise LedgerUnavailableError("Customer has no id or ledger pricing unit")
            summary = self.portal.ledger_summary(customer_id, pricing_unit_id, token)
            balance = parse_ledger_balance(summary.get("credits_balance"))
        except (PortalOfflineError, PortalError, LedgerUnavailableError) as e:
            logger.warning("Ledger balance unavailable, falling back to allocation: %s", e)
            return None
        logger.info("Ledger balance: %d", balance)
        return balance

    def resolve(self, credential: str) -> UsageSnapshot:
        """Fetch the provider documents and build a snapshot.

        Raises UsageResolutionError subclasses, InvalidTimestampError, and
        PortalError / PortalOfflineError for the subscription and usage calls.
        """
        token = extract_token(credential)
        info = self._subscription(token)
        subscription_id = str(info.get("id") or "")
        raw_intervals: list[dict[str, Any]] = info.get("price_intervals") or []

        resolution = resolve_intervals(raw_intervals, subscription_id or None)
        mode = resolution.billing_mode
        if not subscription_id:
            raise UnresolvablePriceError(
                f"No resolvable price or subscription id (billing mode: {mode.value})",
                billing_mode=mode.value,
            )

        ledger_balance = None
        if mode is BillingMode.CREDIT_POOL:
            ledger_balance = self._ledger_balance(token)
        else:
            logger.info("Per-message mode, skipping ledger lookup")

        usage_doc = self.portal.usage(subscription_id, resolution.price_id, token)
        daily, used = aggregate_usage(
            usage_doc,
            resolution.price_id,
            billing_mode=mode.value,
            subscription_id=subscription_id,
        )

        allowance = reconcile(mode, resolution.allocation, used, ledger_balance, self.policy)

        offset = self.offset_hours
        subscription = SubscriptionInfo(
            id=subscription_id,
            name=str(info.get("name") or ""),
            status=str(info.get("status") or ""),
            currency=str(info.get("currency") or ""),
            billing_mode=str(info.get("billing_mode") or ""),
            price_id=resolution.price_id,
            current_billing_period=current_billing_period(raw_intervals, offset),
            price_intervals=[normalize_interval(p, offset) for p in raw_intervals],
        )

        try:
            return UsageSnapshot(
                email=str((info.get("customer") or {}).get("name") or ""),
                billing_mode=mode,
                unit=mode.unit,
                total=allowance.total,
                used=allowance.used,
                remaining=allowance.remaining,
                allowance_source=allowance.source,
                default_allowance_applied=allowance.default_applied,
                registration_date=to_display_time(info.get("creation_time"), offset),
                expiration_date=to_display_time(info.get("end_date"), offset),
                daily_usage=daily,
                subscription=subscription,
            )
        except ValidationError as e:
            raise SnapshotConsistencyError(
                f"Inconsistent usage snapshot: {e.errors()[0]['msg']}",
                billing_mode=mode.value,
                subscription_id=subscription_id,
            ) from e
