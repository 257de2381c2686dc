"""Pydantic models for the resolved usage snapshot."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator


class BillingMode(str, Enum):
    CREDIT_POOL = "credit-pool"
    PER_MESSAGE = "per-message"

    @property
    def unit(self) -> str:
        return UNITS[self]


UNITS = {
    BillingMode.CREDIT_POOL: "Credits",
    BillingMode.PER_MESSAGE: "User Messages",
}


class AllowanceSource(str, Enum):
    LEDGER = "ledger"
    ALLOCATION = "allocation"


# ── Pricing intervals ────────────────────────────────────────────────────────


class Allocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: str
    cadence: str
    pricing_unit: str


class Price(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    unit_amount: str
    currency: str
    model_type: str


class PriceInterval(BaseModel):
    """A pricing interval with its timestamps in display time."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    start_date: str
    end_date: str
    billing_cycle_day: int
    allocation: Allocation | None = None
    price: Price


# ── Snapshot ─────────────────────────────────────────────────────────────────


class DailyUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str  # MM-DD
    usage: Decimal


class BillingPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str
    end: str


class SubscriptionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    status: str
    currency: str
    billing_mode: str  # provider's own label, e.g. "in_advance"
    price_id: str
    current_billing_period: BillingPeriod | None = None
    price_intervals: list[PriceInterval] = []


class UsageSnapshot(BaseModel):
    """One coherent view of the allowance, immutable once built."""

    model_config = ConfigDict(frozen=True)

    email: str
    billing_mode: BillingMode
    unit: str
    total: Decimal
    used: Decimal
    remaining: Decimal
    allowance_source: AllowanceSource
    default_allowance_applied: bool = False
    registration_date: str
    expiration_date: str
    daily_usage: list[DailyUsage]
    subscription: SubscriptionInfo

    @model_validator(mode="after")
    def _check_consistency(self) -> "UsageSnapshot":
        """remaining == total - used always; a positive total only for allocations.

        A ledger-based total is balance + used as reported, and can be 0 when
        the balance is exhausted and nothing was used this period.
        """
        if self.allowance_source is AllowanceSource.ALLOCATION and self.total <= 0:
            raise ValueError("allocation-based total must be positive")
        if self.remaining != self.total - self.used:
            raise ValueError("remaining must equal total - used")
        price_ids = {pi.price.id for pi in self.subscription.price_intervals}
        if self.subscription.price_id not in price_ids:
            raise ValueError(
                f"price id {self.subscription.price_id!r} is not among the pricing intervals"
            )
        return self
