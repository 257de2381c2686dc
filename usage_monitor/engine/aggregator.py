"""Fold the provider's per-day usage series into daily entries and a total."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from usage_monitor.engine.errors import MalformedUsageSeriesError, MissingUsageSeriesError
from usage_monitor.engine.models import DailyUsage


def aggregate_usage(
    document: dict[str, Any],
    price_id: str,
    *,
    billing_mode: str | None = None,
    subscription_id: str | None = None,
) -> tuple[list[DailyUsage], Decimal]:
    """Return (daily entries, used total) for ``price_id``.

    Every provider-reported day produces one entry labelled ``MM-DD``; days
    without a value for the price count as zero but are still listed.
    Non-numeric values or malformed entries raise MalformedUsageSeriesError.
    """
    series = document.get("data_series") if document else None
    if series is None:
        raise MissingUsageSeriesError(
            "Usage response has no data series",
            billing_mode=billing_mode,
            subscription_id=subscription_id,
        )

    def malformed(detail: str) -> MalformedUsageSeriesError:
        return MalformedUsageSeriesError(
            f"Malformed usage series: {detail}",
            billing_mode=billing_mode,
            subscription_id=subscription_id,
        )

    if not isinstance(series, list):
        raise malformed("data series is not a list")

    daily: list[DailyUsage] = []
    used = Decimal(0)
    for entry in series:
        if not isinstance(entry, dict):
            raise malformed(f"entry {entry!r} is not an object")
        label = str(entry.get("date") or "")[5:10]
        values = entry.get("values") or {}
        if not isinstance(values, dict):
            raise malformed(f"values for {label or '?'} are not an object")
        amount = Decimal(0)
        raw = values.get(price_id)
        if raw is not None:
            try:
                amount = Decimal(str(raw))
            except InvalidOperation as exc:
                raise malformed(f"non-numeric value {raw!r} on {label or '?'}") from exc
            if not amount.is_finite():
                raise malformed(f"non-numeric value {raw!r} on {label or '?'}")
            used += amount
        daily.append(DailyUsage(date=label, usage=amount))
    return daily, used
