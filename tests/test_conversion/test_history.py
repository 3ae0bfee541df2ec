"""Tests for HistoryLog, history queries and CSV export."""

from datetime import UTC, datetime
from decimal import Decimal

from fxsync.conversion.history import (
    CSV_COLUMNS,
    MAX_HISTORY,
    HistoryLog,
    history_currencies,
    history_to_csv,
    query_history,
)
from fxsync.models import ALL_CURRENCIES, ConversionRecord

NOW_MS = int(datetime(2024, 3, 15, 12, 0, tzinfo=UTC).timestamp() * 1000)
DAY_MS = 24 * 60 * 60 * 1000


def _record(
    record_id: int,
    from_currency: str = "USD",
    to_currency: str = "CNY",
    from_amount: str = "1",
    to_amount: str = "7.2",
    rate: str = "7.2",
    timestamp_ms: int = NOW_MS,
) -> ConversionRecord:
    return ConversionRecord(
        id=record_id,
        from_currency=from_currency,
        to_currency=to_currency,
        from_amount=Decimal(from_amount),
        to_amount=Decimal(to_amount),
        exchange_rate=Decimal(rate),
        timestamp_ms=timestamp_ms,
        source="Exchange Rate API",
    )


# ---------------------------------------------------------------------------
# HistoryLog
# ---------------------------------------------------------------------------


class TestHistoryLog:
    def test_append_puts_newest_first(self) -> None:
        log = HistoryLog()
        log.append(_record(1))
        log.append(_record(2))

        assert [r.id for r in log.records] == [2, 1]

    def test_capped_after_overflow(self) -> None:
        log = HistoryLog()
        for i in range(1, MAX_HISTORY + 2):
            log.append(_record(i))

        assert len(log) == MAX_HISTORY
        assert log.records[0].id == MAX_HISTORY + 1
        assert log.records[-1].id == 2

    def test_records_is_tuple(self) -> None:
        log = HistoryLog([_record(1)])
        assert isinstance(log.records, tuple)

    def test_next_id_exceeds_loaded_ids(self) -> None:
        log = HistoryLog([_record(41), _record(40)])
        assert log.next_id() == 42
        assert log.next_id() == 43

    def test_next_id_monotonic_after_clear(self) -> None:
        log = HistoryLog([_record(5)])
        log.clear()

        assert len(log) == 0
        assert log.next_id() == 6

    def test_constructor_truncates_to_cap(self) -> None:
        log = HistoryLog([_record(i) for i in range(10, 0, -1)], max_size=3)
        assert [r.id for r in log.records] == [10, 9, 8]


# ---------------------------------------------------------------------------
# query_history
# ---------------------------------------------------------------------------


class TestQueryHistory:
    def test_search_matches_code_and_name(self) -> None:
        records = [_record(1, "USD", "CNY"), _record(2, "EUR", "GBP")]

        assert [r.id for r in query_history(records, search="gbp", now_ms=NOW_MS)] == [2]
        assert [r.id for r in query_history(records, search="yuan", now_ms=NOW_MS)] == [1]

    def test_currency_filter(self) -> None:
        records = [
            _record(1, "USD", "CNY"),
            _record(2, "EUR", "USD"),
            _record(3, "EUR", "GBP"),
        ]

        result = query_history(records, currency="USD", now_ms=NOW_MS)

        assert {r.id for r in result} == {1, 2}

    def test_date_range_windows(self) -> None:
        records = [
            _record(1, timestamp_ms=NOW_MS - 60_000),
            _record(2, timestamp_ms=NOW_MS - 3 * DAY_MS),
            _record(3, timestamp_ms=NOW_MS - 20 * DAY_MS),
            _record(4, timestamp_ms=NOW_MS - 60 * DAY_MS),
        ]

        def ids(date_range: str) -> set[int]:
            return {r.id for r in query_history(records, date_range=date_range, now_ms=NOW_MS)}

        assert ids("today") == {1}
        assert ids("week") == {1, 2}
        assert ids("month") == {1, 2, 3}
        assert ids("all") == {1, 2, 3, 4}

    def test_sort_by_amount_ascending(self) -> None:
        records = [
            _record(1, from_amount="50"),
            _record(2, from_amount="5"),
            _record(3, from_amount="500"),
        ]

        result = query_history(records, sort_field="from_amount", descending=False, now_ms=NOW_MS)

        assert [r.id for r in result] == [2, 1, 3]

    def test_default_sort_is_newest_first(self) -> None:
        records = [_record(1, timestamp_ms=NOW_MS - 10), _record(2, timestamp_ms=NOW_MS)]
        assert [r.id for r in query_history(records, now_ms=NOW_MS)] == [2, 1]


def test_history_currencies_excludes_all_sentinel() -> None:
    records = [
        _record(1, "USD", ALL_CURRENCIES),
        _record(2, "JPY", "EUR"),
    ]
    assert history_currencies(records) == ["EUR", "JPY", "USD"]


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------


class TestHistoryToCsv:
    def test_header_and_rows(self) -> None:
        ts = int(datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC).timestamp() * 1000)
        csv_text = history_to_csv([_record(1, timestamp_ms=ts)])

        lines = csv_text.splitlines()
        assert lines[0] == ",".join(CSV_COLUMNS)
        assert lines[0] == "timestamp,fromCurrency,toCurrency,fromAmount,toAmount,exchangeRate"
        assert lines[1] == "2024-01-02 03:04:05,USD,CNY,1,7.2,7.2"

    def test_empty_history_is_header_only(self) -> None:
        assert history_to_csv([]) == ",".join(CSV_COLUMNS) + "\n"
