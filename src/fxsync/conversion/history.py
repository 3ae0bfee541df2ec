"""Bounded conversion history plus read-side query and CSV rendering.

HistoryLog keeps the most recent MAX_HISTORY records, newest first. Records
are immutable; the only mutations are append (at the front, evicting the
oldest past the cap) and clear.
"""

import csv
import io
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Literal

from fxsync.currencies import CURRENCY_NAMES
from fxsync.models import ALL_CURRENCIES, ConversionRecord

MAX_HISTORY = 100

CSV_COLUMNS = ("timestamp", "fromCurrency", "toCurrency", "fromAmount", "toAmount", "exchangeRate")

DateRange = Literal["all", "today", "week", "month"]
SortField = Literal["timestamp", "from_amount", "to_amount", "rate"]

_SORT_KEYS = {
    "timestamp": lambda r: r.timestamp_ms,
    "from_amount": lambda r: r.from_amount,
    "to_amount": lambda r: r.to_amount,
    "rate": lambda r: r.exchange_rate,
}


class HistoryLog:
    """Most-recent-first list of ConversionRecords capped at `max_size`.

    Also hands out record ids: next_id() is always greater than any id the
    log has held, including ids of records since evicted or cleared.
    """

    def __init__(
        self,
        records: Iterable[ConversionRecord] = (),
        max_size: int = MAX_HISTORY,
    ) -> None:
        self._max_size = max_size
        self._records: list[ConversionRecord] = list(records)[:max_size]
        self._last_id = max((r.id for r in self._records), default=0)

    @property
    def records(self) -> tuple[ConversionRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def next_id(self) -> int:
        self._last_id += 1
        return self._last_id

    def append(self, record: ConversionRecord) -> None:
        """Insert at the front, dropping the oldest records beyond the cap."""
        self._records.insert(0, record)
        del self._records[self._max_size :]
        self._last_id = max(self._last_id, record.id)

    def clear(self) -> None:
        self._records.clear()


def query_history(
    records: Iterable[ConversionRecord],
    *,
    search: str = "",
    currency: str | None = None,
    date_range: DateRange = "all",
    sort_field: SortField = "timestamp",
    descending: bool = True,
    now_ms: int,
    tz: tzinfo = UTC,
) -> list[ConversionRecord]:
    """Filter and sort history for display.

    Args:
        records: Records to query, in any order.
        search: Case-insensitive substring of either currency code or name.
        currency: Keep only records where this code is the source or target.
        date_range: "today" since local midnight in `tz`; "week"/"month"
            since 7/30 days before that midnight.
        sort_field: Attribute to order by.
        descending: Largest first when True.
        now_ms: Reference time for date_range.
        tz: Timezone defining "today".

    Returns:
        A new list; `records` is not modified.
    """
    result = list(records)

    if search:
        needle = search.lower()

        def matches(code: str) -> bool:
            return needle in code.lower() or needle in CURRENCY_NAMES.get(code, "").lower()

        result = [r for r in result if matches(r.from_currency) or matches(r.to_currency)]

    if currency is not None:
        result = [r for r in result if currency in (r.from_currency, r.to_currency)]

    if date_range != "all":
        now = datetime.fromtimestamp(now_ms / 1000, tz=tz)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        lookback = {"today": 0, "week": 7, "month": 30}[date_range]
        since_ms = int((midnight - timedelta(days=lookback)).timestamp() * 1000)
        result = [r for r in result if r.timestamp_ms >= since_ms]

    result.sort(key=_SORT_KEYS[sort_field], reverse=descending)
    return result


def history_currencies(records: Iterable[ConversionRecord]) -> list[str]:
    """Sorted distinct currency codes appearing in history, without the ALL sentinel."""
    codes: set[str] = set()
    for record in records:
        codes.add(record.from_currency)
        if record.to_currency != ALL_CURRENCIES:
            codes.add(record.to_currency)
    return sorted(codes)


def history_to_csv(records: Iterable[ConversionRecord], tz: tzinfo = UTC) -> str:
    """Render records as CSV with a header row and `YYYY-MM-DD HH:MM:SS` timestamps."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for record in records:
        writer.writerow(
            [
                datetime.fromtimestamp(record.timestamp_ms / 1000, tz=tz).strftime(
                    "%Y-%m-%d %H:%M:%S"
                ),
                record.from_currency,
                record.to_currency,
                str(record.from_amount),
                str(record.to_amount),
                str(record.exchange_rate),
            ]
        )
    return buffer.getvalue()
