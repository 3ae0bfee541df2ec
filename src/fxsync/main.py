"""Entry point for the currency sync engine.

Wires all components together, restores persisted state, pulls an initial
rate snapshot, and keeps rates fresh with the AutoRefresher until SIGINT or
SIGTERM.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. KeyValueStorage (SqliteStorage or MemoryStorage based on backend)
4. HttpxClient (shared HTTP transport)
5. RateSource (latest snapshots with fallback)
6. HistoricalSeriesSource (per-day series with synthesis)
7. PersistenceService (persisted slices and TTL caches)
8. Store (state container)
9. AutoRefresher (periodic refresh)
"""

import asyncio
import signal
from typing import Any

from fxsync.config import AppSettings
from fxsync.logging import get_logger, setup_logging
from fxsync.rates.http_client import HttpxClient
from fxsync.rates.rate_source import RateSource
from fxsync.rates.series_source import HistoricalSeriesSource
from fxsync.refresher import AutoRefresher
from fxsync.storage.backend import KeyValueStorage, MemoryStorage
from fxsync.storage.persistence import PersistenceService
from fxsync.storage.sqlite_backend import SqliteStorage
from fxsync.store import Store


async def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Opens the SQLite connection when that backend is selected; the caller
    owns closing it (see _close_components).

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("fxsync.main")

    storage: KeyValueStorage
    if settings.storage.backend == "sqlite":
        sqlite_storage = SqliteStorage(settings.storage.db_path)
        await sqlite_storage.connect()
        storage = sqlite_storage
    else:
        storage = MemoryStorage()
        logger.warning("memory_storage_selected", note="state is lost on exit")

    http_client = HttpxClient(settings.rates)
    rate_source = RateSource(http_client)
    series_source = HistoricalSeriesSource(
        http_client,
        settings.synthesis,
        max_concurrent_requests=settings.rates.max_concurrent_requests,
    )
    persistence = PersistenceService(
        storage,
        settings.cache,
        capacity_bytes=settings.storage.capacity_bytes,
    )
    store = Store(rate_source, series_source, persistence)
    refresher = AutoRefresher(store)

    return {
        "storage": storage,
        "http_client": http_client,
        "rate_source": rate_source,
        "series_source": series_source,
        "persistence": persistence,
        "store": store,
        "refresher": refresher,
    }


async def _close_components(components: dict[str, Any]) -> None:
    await components["refresher"].stop()
    await components["store"].drain()
    await components["http_client"].close()
    storage = components["storage"]
    if isinstance(storage, SqliteStorage):
        await storage.close()


def _setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """Register SIGINT/SIGTERM to request a graceful stop.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("fxsync.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def run() -> None:
    """Run the engine until a shutdown signal arrives."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("fxsync.main")

    # 3-9. Build all components
    components = await _build_components(settings)
    store: Store = components["store"]

    stop_event = asyncio.Event()
    _setup_signal_handlers(stop_event)

    try:
        await store.load()
        snapshot = await store.load_rates()
        logger.info(
            "fxsync_started",
            storage_backend=settings.storage.backend,
            base=store.settings.default_base_currency,
            source=snapshot.source if snapshot is not None else None,
            auto_refresh=store.settings.auto_refresh,
        )
        await components["refresher"].start()
        await stop_event.wait()
    finally:
        await _close_components(components)
        logger.info("fxsync_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
