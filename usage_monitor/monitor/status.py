"""Status-indicator text derived from a usage snapshot."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any

from usage_monitor.engine.models import BillingMode, UsageSnapshot

IDLE_TEXT = "Augment"
LOADING_TEXT = "Loading..."


@dataclass(frozen=True)
class StatusIndicator:
    text: str
    tooltip: str
    warning: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _grouped(value: Decimal) -> str:
    return f"{value:,}"


def status_indicator(
    snapshot: UsageSnapshot | None,
    alert_threshold: int = 4000,
    refreshing: bool = False,
) -> StatusIndicator:
    """Credit-pool mode warns below ``alert_threshold``; per-message never warns."""
    if snapshot is None:
        if refreshing:
            return StatusIndicator(text=LOADING_TEXT, tooltip="Fetching usage")
        return StatusIndicator(text=IDLE_TEXT, tooltip="Show usage")

    remaining, total = snapshot.remaining, snapshot.total
    if snapshot.billing_mode is BillingMode.CREDIT_POOL:
        if remaining < alert_threshold:
            return StatusIndicator(
                text=f"Augment: {_grouped(remaining)}/{_grouped(total)} Credits",
                tooltip=f"Credits running low! {_grouped(remaining)} Credits remaining",
                warning=True,
            )
        return StatusIndicator(
            text=f"Augment: {_grouped(remaining)}/{_grouped(total)} Credits",
            tooltip=f"Show usage\n{_grouped(remaining)} Credits remaining",
        )

    return StatusIndicator(
        text=f"Augment: {remaining}/{total} Messages",
        tooltip=f"Show usage\n{remaining} Messages remaining",
    )
