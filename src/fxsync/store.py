"""Single coherent state container for the converter.

Store composes RateSource, HistoricalSeriesSource, the conversion engine,
HistoryLog and PersistenceService behind one state snapshot. It is built
explicitly and passed to consumers; there is no module-level instance.

Every mutating operation changes in-memory state before its first await,
so readers never see a half-applied edit; the persistence write follows.
Network operations (rate refresh, series fetch) raise the loading flag for
their duration and report failure through `state.error` instead of raising.

Overlapping refreshes: each refresh takes a generation number and only the
newest one may install its snapshot. Older responses are discarded.
"""

import asyncio
import time
from collections.abc import Callable, Coroutine
from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from fxsync.conversion.engine import apply_edit, convert_pair, parse_amount
from fxsync.conversion.history import HistoryLog
from fxsync.currencies import catalog_currency, default_currencies
from fxsync.exceptions import (
    InvalidBackupError,
    InvalidSettingsError,
    MinimumCurrenciesError,
    UnknownCurrencyError,
)
from fxsync.logging import get_logger
from fxsync.models import (
    ALL_CURRENCIES,
    ConversionRecord,
    Currency,
    RateSnapshot,
    SeriesPoint,
    StorageUsage,
    StoreState,
    TimeRange,
    UserSettings,
)
from fxsync.rates.rate_source import RateSource
from fxsync.rates.series_source import HistoricalSeriesSource
from fxsync.storage.persistence import Backup, PersistenceService

logger = get_logger(__name__)

MIN_TRACKED_CURRENCIES = 2


class Store:
    """Owns rates, amounts, currencies, history, settings and chart data.

    Args:
        rate_source: Latest-rate provider (never raises).
        series_source: Historical series provider.
        persistence: Typed storage for persisted slices and TTL caches.
        clock: Returns Unix seconds; injected for tests.

    Usage:
        store = Store(rate_source, series_source, persistence)
        await store.load()
        await store.load_rates()
        await store.set_amount("USD", Decimal("100"))
        print(store.state.amounts["CNY"])
    """

    def __init__(
        self,
        rate_source: RateSource,
        series_source: HistoricalSeriesSource,
        persistence: PersistenceService,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rate_source = rate_source
        self._series_source = series_source
        self._persistence = persistence
        self._clock = clock

        self._currencies: list[Currency] = default_currencies()
        self._active_currency: str | None = None
        self._rates: RateSnapshot | None = None
        self._amounts: dict[str, Decimal] = {}
        self._history = HistoryLog()
        self._settings = UserSettings()
        self._chart_data: dict[str, list[SeriesPoint]] = {}
        self._error: str | None = None

        self._in_flight = 0
        self._refresh_generation = 0
        self._background_tasks: set[asyncio.Task] = set()  # type: ignore[type-arg]

    # ──────────────────────────────────────────────
    # State access
    # ──────────────────────────────────────────────

    @property
    def state(self) -> StoreState:
        """Return a copy of the current state."""
        return StoreState(
            currencies=[replace(c) for c in self._currencies],
            active_currency=self._active_currency,
            exchange_rates=self._rates.copy() if self._rates is not None else None,
            amounts=dict(self._amounts),
            history=self._history.records,
            settings=self._settings.model_copy(deep=True),
            chart_data={pair: list(points) for pair, points in self._chart_data.items()},
            is_loading=self._in_flight > 0,
            error=self._error,
        )

    @property
    def settings(self) -> UserSettings:
        return self._settings.model_copy(deep=True)

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    def tracked_codes(self) -> list[str]:
        return [c.code for c in self._currencies]

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ──────────────────────────────────────────────
    # Startup
    # ──────────────────────────────────────────────

    async def load(self) -> None:
        """Restore persisted settings, currencies and history.

        A fresh rate-cache entry for the default base is installed as the
        current snapshot. Missing or unreadable slices keep their defaults.
        """
        settings = await self._persistence.load_settings()
        if settings is not None:
            self._settings = settings

        currencies = await self._persistence.load_currencies()
        if currencies is not None:
            if _valid_currency_list(currencies):
                self._currencies = currencies
            else:
                logger.warning("persisted_currencies_invalid_using_defaults", count=len(currencies))

        self._history = HistoryLog(await self._persistence.load_history())

        cached = await self._persistence.rate_cache.get(self._settings.default_base_currency)
        if cached is not None:
            self._rates = cached

        logger.info(
            "store_loaded",
            currencies=len(self._currencies),
            history=len(self._history),
            cached_rates=cached is not None,
        )

    # ──────────────────────────────────────────────
    # Currencies
    # ──────────────────────────────────────────────

    async def add_currency(self, currency: Currency | str) -> bool:
        """Track a currency. Returns False if its code is already tracked.

        A bare code is looked up in the built-in catalog.
        """
        if isinstance(currency, str):
            found = catalog_currency(currency)
            if found is None:
                raise UnknownCurrencyError(f"{currency} is not in the currency catalog")
            currency = found

        if currency.code in self.tracked_codes():
            logger.debug("currency_already_tracked", code=currency.code)
            return False

        self._currencies.append(replace(currency))
        await self._persistence.save_currencies(self._currencies)
        logger.info("currency_added", code=currency.code)
        return True

    async def remove_currency(self, code: str) -> None:
        """Stop tracking `code`, keeping at least MIN_TRACKED_CURRENCIES.

        Also drops the code from the preferred-currency setting.
        """
        self._require_tracked(code)
        if len(self._currencies) <= MIN_TRACKED_CURRENCIES:
            raise MinimumCurrenciesError(
                f"at least {MIN_TRACKED_CURRENCIES} currencies must remain tracked"
            )

        self._currencies = [c for c in self._currencies if c.code != code]
        self._settings = self._settings.model_copy(
            update={
                "preferred_currencies": [
                    c for c in self._settings.preferred_currencies if c != code
                ]
            }
        )
        if self._active_currency == code:
            self._active_currency = None

        await self._persistence.save_currencies(self._currencies)
        await self._persistence.save_settings(self._settings)
        logger.info("currency_removed", code=code)

    async def move_currency(self, code: str, index: int) -> None:
        """Move `code` to position `index` (clamped to the list bounds)."""
        self._require_tracked(code)
        position = self.tracked_codes().index(code)
        currency = self._currencies.pop(position)
        index = max(0, min(index, len(self._currencies)))
        self._currencies.insert(index, currency)
        await self._persistence.save_currencies(self._currencies)

    async def set_currency_order(self, codes: list[str]) -> None:
        """Reorder the tracked list. `codes` must be a permutation of it."""
        if sorted(codes) != sorted(self.tracked_codes()):
            raise UnknownCurrencyError("new order must contain exactly the tracked currencies")
        by_code = {c.code: c for c in self._currencies}
        self._currencies = [by_code[code] for code in codes]
        await self._persistence.save_currencies(self._currencies)

    async def update_currency(
        self,
        code: str,
        *,
        is_active: bool | None = None,
        is_favorite: bool | None = None,
    ) -> Currency:
        """Change flags of a tracked currency in place, keeping its position."""
        self._require_tracked(code)
        position = self.tracked_codes().index(code)
        current = self._currencies[position]
        updated = replace(
            current,
            is_active=current.is_active if is_active is None else is_active,
            is_favorite=current.is_favorite if is_favorite is None else is_favorite,
        )
        self._currencies[position] = updated
        await self._persistence.save_currencies(self._currencies)
        return replace(updated)

    def set_active_currency(self, code: str | None) -> None:
        if code is not None:
            self._require_tracked(code)
        self._active_currency = code

    def _require_tracked(self, code: str) -> None:
        if code not in self.tracked_codes():
            raise UnknownCurrencyError(f"{code} is not tracked")

    # ──────────────────────────────────────────────
    # Settings
    # ──────────────────────────────────────────────

    async def update_settings(self, **changes: Any) -> UserSettings:
        """Merge a partial settings update.

        The merged settings are validated as a whole first; on failure
        InvalidSettingsError is raised and nothing changes. Changing the
        default base currency schedules a rate refresh in the background.
        """
        unknown = set(changes) - set(UserSettings.model_fields)
        if unknown:
            raise InvalidSettingsError(f"unknown settings: {', '.join(sorted(unknown))}")
        try:
            merged = UserSettings.model_validate({**self._settings.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidSettingsError(str(e)) from e

        base_changed = merged.default_base_currency != self._settings.default_base_currency
        self._settings = merged
        await self._persistence.save_settings(merged)
        logger.info("settings_updated", fields=sorted(changes))

        if base_changed:
            self._schedule(self.refresh_rates())
        return merged.model_copy(deep=True)

    # ──────────────────────────────────────────────
    # Amounts and conversions
    # ──────────────────────────────────────────────

    async def set_amount(
        self,
        currency: str,
        amount: Decimal | int | str,
        record: bool = True,
    ) -> dict[str, Decimal]:
        """Edit one currency's amount and propagate it to all others.

        When `record` is set and the amount is positive for a tracked
        currency, an ALL-currencies ConversionRecord is logged. Raises
        InvalidAmountError, leaving amounts untouched, for non-finite input
        or results too large to round.
        """
        amount = parse_amount(amount)
        rates = self._rates
        self._amounts = apply_edit(
            self._amounts, currency, amount, rates, self._settings.decimal_places
        )

        if record and amount > 0 and currency in self.tracked_codes():
            rate = rates.rate_for(currency) if rates is not None else None
            self._history.append(
                ConversionRecord(
                    id=self._history.next_id(),
                    from_currency=currency,
                    to_currency=ALL_CURRENCIES,
                    from_amount=amount,
                    to_amount=Decimal("0"),
                    exchange_rate=rate if rate is not None else Decimal("1"),
                    timestamp_ms=self._now_ms(),
                    source=rates.source if rates is not None else "Unknown",
                )
            )
            await self._persistence.save_history(list(self._history.records))

        return dict(self._amounts)

    async def convert_currency(
        self,
        from_currency: str,
        to_currency: str,
        amount: Decimal | int | str,
    ) -> ConversionRecord | None:
        """Convert between two currencies and log the result.

        Returns None, logging nothing, when rates are missing for either side.
        """
        record = convert_pair(
            from_currency,
            to_currency,
            parse_amount(amount),
            self._rates,
            self._settings.decimal_places,
            record_id=self._history.next_id(),
            timestamp_ms=self._now_ms(),
        )
        if record is None:
            logger.debug("conversion_skipped", from_currency=from_currency, to_currency=to_currency)
            return None

        self._history.append(record)
        await self._persistence.save_history(list(self._history.records))
        return record

    async def clear_history(self) -> None:
        self._history.clear()
        await self._persistence.clear_history()
        logger.info("history_cleared")

    # ──────────────────────────────────────────────
    # Rates
    # ──────────────────────────────────────────────

    async def load_rates(self) -> RateSnapshot | None:
        """Use a fresh cached snapshot for the default base, else refresh."""
        base = self._settings.default_base_currency
        cached = await self._persistence.rate_cache.get(base)
        if cached is not None:
            self._rates = cached
            logger.debug("rates_from_cache", base=base)
            return cached.copy()
        return await self.refresh_rates()

    async def refresh_rates(self) -> RateSnapshot | None:
        """Fetch the latest snapshot for the default base and install it.

        Returns the installed snapshot, or None if the fetch failed or a
        newer refresh was started while this one was in flight.
        """
        self._refresh_generation += 1
        generation = self._refresh_generation
        base = self._settings.default_base_currency

        self._in_flight += 1
        self._error = None
        try:
            snapshot = await self._rate_source.fetch_latest(base)
        except Exception as e:
            if generation == self._refresh_generation:
                self._error = str(e) or "Failed to fetch exchange rates"
            logger.error("rate_refresh_failed", base=base, error=str(e))
            return None
        finally:
            self._in_flight -= 1

        if generation != self._refresh_generation:
            logger.info(
                "stale_refresh_discarded",
                base=base,
                generation=generation,
                latest=self._refresh_generation,
            )
            return None

        self._rates = snapshot.copy()
        if not snapshot.is_fallback:
            await self._persistence.rate_cache.put(snapshot.base, snapshot)
        logger.info(
            "rates_refreshed",
            base=snapshot.base,
            source=snapshot.source,
            count=len(snapshot.rates),
        )
        return self._rates.copy()

    async def fetch_historical(
        self,
        base: str,
        target: str,
        time_range: TimeRange | str = TimeRange.ONE_WEEK,
    ) -> list[SeriesPoint]:
        """Return the series for a pair, served from the chart cache when fresh.

        A cached series covering at least the requested span is trimmed to
        its most recent days. The per-pair chart map is updated either way.
        Codes are upper-cased, so "usd/cny" and "USD/CNY" share one entry.
        """
        days = TimeRange(time_range).days
        base, target = base.upper(), target.upper()
        pair = f"{base}/{target}"

        cached = await self._persistence.chart_cache.get(pair)
        if cached is not None and len(cached) >= days:
            points = cached[-days:]
        else:
            self._in_flight += 1
            self._error = None
            try:
                points = await self._series_source.fetch_series(base, target, days)
            except Exception as e:
                self._error = str(e) or "Failed to fetch historical data"
                logger.error("series_fetch_failed", pair=pair, error=str(e))
                return []
            finally:
                self._in_flight -= 1
            await self._persistence.chart_cache.put(pair, points)

        self._chart_data[pair] = points
        return list(points)

    # ──────────────────────────────────────────────
    # Backup and housekeeping
    # ──────────────────────────────────────────────

    def export_data(self, exported_at: datetime | None = None) -> dict[str, Any]:
        """Serialize settings, history and currencies for a backup file."""
        backup = Backup(
            settings=self._settings,
            history=list(self._history.records),
            currencies=self._currencies,
        )
        return PersistenceService.export_payload(backup, exported_at or datetime.now(UTC))

    async def import_data(self, data: Any) -> None:
        """Restore a backup produced by export_data.

        Only sections present in `data` are overwritten. The payload is
        fully validated first; InvalidBackupError leaves everything as is.
        """
        backup = PersistenceService.parse_backup(data)
        if backup.currencies is not None and not _valid_currency_list(backup.currencies):
            raise InvalidBackupError(
                f"backup must track at least {MIN_TRACKED_CURRENCIES} distinct currencies"
            )

        if backup.settings is not None:
            self._settings = backup.settings
        if backup.history is not None:
            self._history = HistoryLog(backup.history)
            backup.history = list(self._history.records)
        if backup.currencies is not None:
            self._currencies = backup.currencies
            if self._active_currency not in self.tracked_codes():
                self._active_currency = None

        await self._persistence.write_backup(backup)
        logger.info(
            "backup_imported",
            settings=backup.settings is not None,
            history=backup.history is not None,
            currencies=backup.currencies is not None,
        )

    async def storage_usage(self) -> StorageUsage:
        return await self._persistence.storage_usage()

    async def clear_cache(self) -> None:
        """Drop cached rates and series from storage; state is untouched."""
        await self._persistence.clear_all_cache()
        logger.info("cache_cleared")

    async def clear_all_data(self) -> None:
        """Erase all persisted data and reset state to first-run defaults."""
        await self._persistence.clear_all_data()
        self._settings = UserSettings()
        self._currencies = default_currencies()
        self._history = HistoryLog()
        self._amounts = {}
        self._chart_data = {}
        self._active_currency = None
        self._rates = None
        self._error = None
        logger.info("all_data_cleared")

    # ──────────────────────────────────────────────
    # Background work
    # ──────────────────────────────────────────────

    def _schedule(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def drain(self) -> None:
        """Wait for scheduled background work (e.g. settings-triggered refreshes)."""
        while self._background_tasks:
            await asyncio.gather(*self._background_tasks)


def _valid_currency_list(currencies: list[Currency]) -> bool:
    codes = [c.code for c in currencies]
    return len(codes) >= MIN_TRACKED_CURRENCIES and len(set(codes)) == len(codes)
