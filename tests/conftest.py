"""Shared test fixtures."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from usage_monitor.engine.assembler import UsageResolver
from usage_monitor.portal.client import PortalClient


def make_interval(
    interval_id: str,
    price_name: str,
    price_id: str,
    *,
    start: str = "2024-01-01T00:00:00Z",
    end: str | None = None,
    active: bool = False,
    pricing_unit: str | None = None,
    amount: str | None = None,
) -> dict[str, Any]:
    """A provider pricing interval in the portal's JSON shape."""
    interval: dict[str, Any] = {
        "id": interval_id,
        "start_date": start,
        "end_date": end,
        "billing_cycle_day": 1,
        "allocation": None,
        "price": {
            "id": price_id,
            "price": {
                "name": price_name,
                "currency": "USD",
                "model_type": "unit",
                "unit_config": {"unit_amount": "0.00"},
            },
        },
    }
    if pricing_unit is not None:
        interval["allocation"] = {
            "amount": amount or "0.00",
            "cadence": "monthly",
            "pricing_unit": {"display_name": pricing_unit},
        }
    if active:
        interval["current_billing_period_start_date"] = "2024-03-01T00:00:00Z"
        interval["current_billing_period_end_date"] = "2024-04-01T00:00:00Z"
    return interval


def make_subscription(intervals: list[dict[str, Any]], **overrides: Any) -> dict[str, Any]:
    info: dict[str, Any] = {
        "id": "sub_123",
        "name": "Augment Developer",
        "status": "active",
        "currency": "USD",
        "billing_mode": "in_advance",
        "customer": {"name": "dev@example.com"},
        "creation_time": "2024-01-01T16:00:00Z",
        "end_date": None,
        "price_intervals": intervals,
    }
    info.update(overrides)
    return {"data": [info]}


def make_usage(values: list[tuple[str, dict[str, float]]]) -> dict[str, Any]:
    return {
        "data_series": [
            {"date": f"{day}T00:00:00+00:00", "values": v} for day, v in values
        ]
    }


@pytest.fixture
def credit_intervals() -> list[dict[str, Any]]:
    """Active credit-pool subscription with an included allocation of 600."""
    return [
        make_interval(
            "pi_alloc", "Included Allocation (Credits)", "price_alloc",
            active=True, pricing_unit="Credits", amount="600.00",
        ),
        make_interval("pi_credits", "Augment Credits", "price_credits", active=True),
    ]


@pytest.fixture
def message_intervals() -> list[dict[str, Any]]:
    """Active per-message subscription with no allocation amount."""
    return [
        make_interval(
            "pi_alloc", "Included Allocation (User Messages)", "price_alloc_msg",
            active=True, pricing_unit="User Messages", amount="0.00",
        ),
        make_interval("pi_msg", "User Message", "price_msg", active=True),
    ]


@pytest.fixture
def mock_portal() -> MagicMock:
    """A PortalClient double; tests set return values per endpoint."""
    portal = MagicMock(spec=PortalClient)
    portal.customer.return_value = {
        "customer": {"id": "cus_1", "ledger_pricing_units": [{"id": "pu_1"}]}
    }
    portal.ledger_summary.return_value = {"credits_balance": "350.00"}
    portal.usage.return_value = make_usage([])
    return portal


@pytest.fixture
def resolver(mock_portal: MagicMock) -> UsageResolver:
    return UsageResolver(mock_portal)
