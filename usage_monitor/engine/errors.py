"""Failure taxonomy for usage resolution."""

from __future__ import annotations


class UsageResolutionError(Exception):
    """Base class for failures that abort a resolution.

    Carries the billing mode that was being attempted and the subscription id
    when they are known, so callers can render a useful message.
    """

    def __init__(
        self,
        message: str,
        *,
        billing_mode: str | None = None,
        subscription_id: str | None = None,
    ) -> None:
        self.billing_mode = billing_mode
        self.subscription_id = subscription_id
        super().__init__(message)


class MissingSubscriptionError(UsageResolutionError):
    """The subscription response did not contain a subscription document."""


class UnresolvablePriceError(UsageResolutionError):
    """No pricing interval matched any price classification rule."""


class MissingUsageSeriesError(UsageResolutionError):
    """The usage response did not contain a data series."""


class MalformedUsageSeriesError(MissingUsageSeriesError):
    """The usage data series holds an entry or value that is not usable."""


class SnapshotConsistencyError(UsageResolutionError):
    """Assembled values do not form a consistent snapshot."""


class InvalidTimestampError(ValueError):
    """A provider timestamp could not be parsed."""


class LedgerUnavailableError(Exception):
    """The ledger balance could not be obtained. Never fatal."""
