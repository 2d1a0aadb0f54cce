"""
Poller Service - periodic call-tracker refresh.

Re-fetches leads and follow-ups on an interval, reconciles them and logs
the activity counters. The blocking refresh runs in the default executor
so the loop stays responsive to shutdown signals.
"""

import asyncio
import logging
import signal
from datetime import datetime
from typing import Callable, Optional

from .config import config
from .service import CallTrackerState, LeadToOrderService

logger = logging.getLogger(__name__)


class Poller:
    """Async refresh loop for the call tracker."""

    def __init__(
        self,
        service: LeadToOrderService,
        interval: Optional[int] = None,
        on_refresh: Optional[Callable[[CallTrackerState], None]] = None,
    ):
        self.service = service
        self.interval = interval or config.REFRESH_INTERVAL
        self.on_refresh = on_refresh
        self.running = False

        self._last_refresh: Optional[datetime] = None
        self._refreshes = 0
        self._errors = 0

    def _setup_signal_handlers(self):
        """Setup graceful shutdown handlers."""
        def shutdown_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down...")
            self.running = False

        signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)

    async def refresh_once(self) -> CallTrackerState:
        loop = asyncio.get_running_loop()
        state = await loop.run_in_executor(None, self.service.refresh_call_tracker)

        self._refreshes += 1
        self._last_refresh = datetime.now()

        counters = state.reconciliation.counters
        logger.info(
            f"Refresh: {len(state.reconciliation.leads)} active leads, "
            f"{counters.pending_follow_ups} pending, "
            f"{counters.todays_activity} today, "
            f"{counters.total_interactions} total interactions"
        )
        for notice in state.notices:
            logger.warning(str(notice))

        if self.on_refresh:
            self.on_refresh(state)
        return state

    async def poll(self):
        while self.running:
            try:
                await self.refresh_once()
            except Exception as e:
                self._errors += 1
                logger.error(f"Refresh error: {e}")

            # Sleep in short steps so shutdown is noticed quickly
            waited = 0.0
            while self.running and waited < self.interval:
                await asyncio.sleep(min(1.0, self.interval - waited))
                waited += 1.0

    def get_status(self) -> dict:
        return {
            'running': self.running,
            'interval': self.interval,
            'refreshes': self._refreshes,
            'errors': self._errors,
            'last_refresh': self._last_refresh.isoformat() if self._last_refresh else None,
        }

    async def run(self):
        self.running = True
        self._setup_signal_handlers()

        logger.info(f"Call tracker refresh starting (interval: {self.interval}s)")
        try:
            await self.poll()
        except asyncio.CancelledError:
            pass

        logger.info(f"Poller stopped after {self._refreshes} refreshes, {self._errors} errors")

    def start(self):
        """Start the poller (blocking)."""
        asyncio.run(self.run())
