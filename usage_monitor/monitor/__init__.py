"""Refresh layer — shared refresh context, background poller, status indicator."""

from .poller import UsagePoller
from .refresh import NoTokenError, RefreshContext, RefreshInProgressError, refresh
from .status import StatusIndicator, status_indicator
