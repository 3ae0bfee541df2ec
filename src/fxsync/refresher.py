"""Periodic rate refresh driven by the user's auto-refresh settings.

Polls the Store every `refresh_interval` minutes while `auto_refresh` is on.
Both settings are re-read on every cycle, so changes take effect at the next
wake-up without restarting the loop.
"""

import asyncio

from fxsync.logging import get_logger
from fxsync.store import Store

logger = get_logger(__name__)

SECONDS_PER_MINUTE = 60.0


class AutoRefresher:
    """Background task refreshing exchange rates on a fixed cadence."""

    def __init__(self, store: Store, seconds_per_minute: float = SECONDS_PER_MINUTE) -> None:
        self._store = store
        self._seconds_per_minute = seconds_per_minute
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._refresh_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    def interval_seconds(self) -> float:
        return self._store.settings.refresh_interval * self._seconds_per_minute

    async def start(self) -> None:
        """Begin refreshing in the background."""
        if self._running:
            logger.warning("auto_refresher_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._refresh_loop())
        logger.info("auto_refresher_started", interval_seconds=self.interval_seconds())

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("auto_refresher_stopped", refreshes=self._refresh_count)

    async def _refresh_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval_seconds())
            if not self._running:
                break
            try:
                await self.refresh_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("auto_refresh_error", exc_info=True)

    async def refresh_once(self) -> bool:
        """Refresh if auto-refresh is enabled. Returns whether a refresh ran."""
        if not self._store.settings.auto_refresh:
            logger.debug("auto_refresh_disabled_skipping")
            return False
        await self._store.refresh_rates()
        self._refresh_count += 1
        return True
