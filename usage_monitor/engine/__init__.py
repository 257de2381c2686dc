"""Usage resolution engine — credential/time normalizers, resolver, reconciler, assembler."""

from .assembler import UsageResolver
from .credentials import extract_token
from .errors import (
    InvalidTimestampError,
    MissingSubscriptionError,
    MissingUsageSeriesError,
    SnapshotConsistencyError,
    UnresolvablePriceError,
    UsageResolutionError,
)
from .models import AllowanceSource, BillingMode, UsageSnapshot
from .reconciler import AllowancePolicy
from .timeutil import to_display_time
