"""Background poller — periodically resolves usage into a refresh context.

Features:
- Interval clamped to at least 5s
- Exponential backoff on consecutive failures, capped
- Resets to the base interval on the first success after a failure
- Skips a cycle while no token is set or another refresh is running
"""

from __future__ import annotations

import asyncio
import logging

from usage_monitor.engine.assembler import UsageResolver
from usage_monitor.monitor.refresh import (
    NoTokenError,
    RefreshContext,
    RefreshInProgressError,
    refresh,
)

logger = logging.getLogger(__name__)

MIN_INTERVAL = 5.0
_BACKOFF_FACTOR = 2.0
_MAX_BACKOFF_STEPS = 4


class UsagePoller:
    """Refreshes the usage snapshot every ``interval`` seconds."""

    def __init__(
        self,
        resolver: UsageResolver,
        context: RefreshContext,
        interval: float = 300.0,
        max_interval: float | None = None,
    ) -> None:
        self.resolver = resolver
        self.context = context
        self.base_interval = max(float(interval), MIN_INTERVAL)
        self.max_interval = max_interval or self.base_interval * _BACKOFF_FACTOR**_MAX_BACKOFF_STEPS
        self.current_interval = self.base_interval
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background polling loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("Usage poller started (interval=%ss, max=%ss)", self.base_interval, self.max_interval)

    async def stop(self) -> None:
        """Stop the background poller."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Usage poller stopped")

    async def _poll_loop(self) -> None:
        while self._running:
            await self.check_once()
            await asyncio.sleep(self.current_interval)

    async def check_once(self) -> None:
        """Single refresh with backoff logic."""
        loop = asyncio.get_running_loop()
        try:
            snapshot = await loop.run_in_executor(None, refresh, self.context, self.resolver)
        except NoTokenError:
            logger.debug("No portal token set, skipping refresh")
            return
        except RefreshInProgressError:
            logger.debug("Refresh already in flight, skipping")
            return
        except Exception as e:
            failures = self.context.consecutive_failures
            self.current_interval = min(
                self.base_interval * (_BACKOFF_FACTOR ** max(failures - 1, 0)),
                self.max_interval,
            )
            logger.warning(
                "Usage refresh failed (%d consecutive), next attempt in %.0fs: %s",
                failures,
                self.current_interval,
                e,
            )
            return

        self.current_interval = self.base_interval
        logger.info(
            "Usage refreshed: %s/%s %s remaining",
            snapshot.remaining,
            snapshot.total,
            snapshot.unit,
        )
