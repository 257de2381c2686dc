"""Allowance reconciliation: ledger balance versus allocation."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from usage_monitor.engine.errors import LedgerUnavailableError
from usage_monitor.engine.models import AllowanceSource, BillingMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllowancePolicy:
    """Allowances substituted when no allocation can be resolved."""

    default_credit_allowance: int = 4000
    default_message_allowance: int = 50

    def default_for(self, mode: BillingMode) -> int:
        if mode is BillingMode.CREDIT_POOL:
            return self.default_credit_allowance
        return self.default_message_allowance


@dataclass(frozen=True)
class Allowance:
    total: Decimal
    used: Decimal
    remaining: Decimal
    source: AllowanceSource
    default_applied: bool = False


def parse_ledger_balance(value: object) -> int:
    """Floor the provider's decimal balance string to an integer.

    Raises LedgerUnavailableError when the balance is missing or not numeric.
    """
    if value is None or value == "":
        raise LedgerUnavailableError("Ledger summary has no credits balance")
    try:
        balance = Decimal(str(value))
    except InvalidOperation as exc:
        raise LedgerUnavailableError(f"Ledger balance is not numeric: {value!r}") from exc
    if not balance.is_finite():
        raise LedgerUnavailableError(f"Ledger balance is not finite: {value!r}")
    return math.floor(balance)


def reconcile(
    mode: BillingMode,
    allocation: int | None,
    used: Decimal,
    ledger_balance: int | None = None,
    policy: AllowancePolicy | None = None,
) -> Allowance:
    """Derive total/used/remaining.

    In credit-pool mode a ledger balance is authoritative: remaining is the
    balance and total is balance + used. Otherwise total is the allocation,
    replaced by the policy default when it is zero or missing.
    """
    policy = policy or AllowancePolicy()

    if mode is BillingMode.CREDIT_POOL and ledger_balance is not None:
        remaining = Decimal(ledger_balance)
        total = remaining + used
        logger.info("Using ledger balance: total=%s (remaining %s + used %s)", total, remaining, used)
        if total <= 0:
            logger.warning("Ledger reports no credits left and no usage: total is %s", total)
        return Allowance(total=total, used=used, remaining=remaining, source=AllowanceSource.LEDGER)

    default_applied = False
    if not allocation:
        allocation = policy.default_for(mode)
        default_applied = True
        logger.warning("No allocation found, using default allowance %d %s", allocation, mode.unit)

    total = Decimal(allocation)
    remaining = total - used
    logger.info("Using allocation: total=%s used=%s remaining=%s", total, used, remaining)
    return Allowance(
        total=total,
        used=used,
        remaining=remaining,
        source=AllowanceSource.ALLOCATION,
        default_applied=default_applied,
    )
