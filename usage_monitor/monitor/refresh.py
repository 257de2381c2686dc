"""Caller-side refresh context: single-writer flag plus last good snapshot.

The resolver itself is stateless. Anything that refreshes periodically and
also answers on-demand reads shares one RefreshContext, passed explicitly to
refresh(); a refresh is skipped while another one is in flight.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any

from usage_monitor.engine.assembler import UsageResolver
from usage_monitor.engine.credentials import extract_token
from usage_monitor.engine.models import UsageSnapshot

logger = logging.getLogger(__name__)


class RefreshInProgressError(Exception):
    """Raised when a refresh is requested while another is running."""


class NoTokenError(Exception):
    """Raised when a refresh is requested before a token is configured."""


class RefreshContext:
    """Shared state for one monitored account."""

    def __init__(self, token: str = "") -> None:
        self._token = extract_token(token) if token else ""
        self._in_flight = threading.Lock()
        self._snapshot: UsageSnapshot | None = None
        self.last_refresh: str | None = None
        self.last_success: str | None = None
        self.error: str | None = None
        self.consecutive_failures: int = 0

    # ── Token ────────────────────────────────────────────────────────────

    @property
    def token(self) -> str:
        return self._token

    def set_token(self, value: str) -> str:
        """Store a raw token or portal URL; returns the bare token."""
        self._token = extract_token(value.strip())
        logger.info("Portal token %s", "updated" if self._token else "cleared")
        return self._token

    # ── Snapshot ─────────────────────────────────────────────────────────

    @property
    def refreshing(self) -> bool:
        return self._in_flight.locked()

    def snapshot(self) -> UsageSnapshot | None:
        """Copy of the last successful snapshot."""
        if self._snapshot is None:
            return None
        return self._snapshot.model_copy(deep=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_set": bool(self._token),
            "refreshing": self.refreshing,
            "has_snapshot": self._snapshot is not None,
            "last_refresh": self.last_refresh,
            "last_success": self.last_success,
            "error": self.error,
            "consecutive_failures": self.consecutive_failures,
        }


def refresh(context: RefreshContext, resolver: UsageResolver) -> UsageSnapshot:
    """Resolve a fresh snapshot into ``context``.

    Raises NoTokenError, RefreshInProgressError, or whatever the resolver
    raises. On failure the previous snapshot is kept.
    """
    token = context.token
    if not token:
        raise NoTokenError("No portal token configured")
    if not context._in_flight.acquire(blocking=False):
        raise RefreshInProgressError("A refresh is already in progress")

    try:
        context.last_refresh = datetime.now(timezone.utc).isoformat()
        try:
            snapshot = resolver.resolve(token)
        except Exception as e:
            context.consecutive_failures += 1
            context.error = str(e)
            raise
        context._snapshot = snapshot
        context.last_success = context.last_refresh
        context.error = None
        context.consecutive_failures = 0
        return snapshot.model_copy(deep=True)
    finally:
        context._in_flight.release()
