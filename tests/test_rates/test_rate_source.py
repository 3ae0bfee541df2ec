"""Tests for RateSource latest snapshots and the currency list.

All tests use a mocked HttpClient to avoid real API calls.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from fxsync.exceptions import RateApiError
from fxsync.models import API_SOURCE, FALLBACK_SOURCE
from fxsync.rates.fallback import FALLBACK_CURRENCY_NAMES
from fxsync.rates.rate_source import RateSource

LATEST_USD = {
    "base": "USD",
    "rates": {"USD": 1, "CNY": Decimal("7.1"), "EUR": Decimal("0.92"), "JPY": Decimal("151.5")},
    "timestamp": 1_710_504_000,
}


@pytest.fixture
def mock_http() -> AsyncMock:
    http = AsyncMock()
    http.get_json = AsyncMock(return_value=LATEST_USD)
    return http


@pytest.fixture
def source(mock_http: AsyncMock, clock) -> RateSource:
    return RateSource(mock_http, clock=clock)


class TestFetchLatest:
    @pytest.mark.asyncio
    async def test_network_snapshot(self, source: RateSource, mock_http: AsyncMock) -> None:
        snapshot = await source.fetch_latest("usd")

        mock_http.get_json.assert_awaited_once_with("/latest/USD")
        assert snapshot.base == "USD"
        assert snapshot.source == API_SOURCE
        assert not snapshot.is_fallback
        assert snapshot.rates["CNY"] == Decimal("7.1")
        assert snapshot.rates["JPY"] == Decimal("151.5")
        assert "USD" not in snapshot.rates
        assert snapshot.timestamp_ms == 1_710_504_000_000

    @pytest.mark.asyncio
    async def test_rates_keep_full_decimal_precision(
        self, source: RateSource, mock_http: AsyncMock
    ) -> None:
        mock_http.get_json.return_value = {
            **LATEST_USD,
            "rates": {"CNY": Decimal("7.123456789012345678")},
        }

        snapshot = await source.fetch_latest("USD")

        assert snapshot.rates["CNY"] == Decimal("7.123456789012345678")

    @pytest.mark.asyncio
    async def test_transport_failure_uses_fallback(
        self, source: RateSource, mock_http: AsyncMock, clock
    ) -> None:
        mock_http.get_json.side_effect = RateApiError("connection refused")

        snapshot = await source.fetch_latest("USD")

        assert snapshot.source == FALLBACK_SOURCE
        assert snapshot.is_fallback
        assert snapshot.rates["CNY"] == Decimal("7.2456")
        assert snapshot.timestamp_ms == int(clock() * 1000)

    @pytest.mark.asyncio
    async def test_malformed_body_uses_fallback(
        self, source: RateSource, mock_http: AsyncMock
    ) -> None:
        mock_http.get_json.return_value = {"result": "error"}

        snapshot = await source.fetch_latest("USD")

        assert snapshot.source == FALLBACK_SOURCE

    @pytest.mark.asyncio
    async def test_non_positive_rate_uses_fallback(
        self, source: RateSource, mock_http: AsyncMock
    ) -> None:
        mock_http.get_json.return_value = {**LATEST_USD, "rates": {"CNY": 0}}

        snapshot = await source.fetch_latest("USD")

        assert snapshot.source == FALLBACK_SOURCE

    @pytest.mark.asyncio
    async def test_cny_fallback_table(self, source: RateSource, mock_http: AsyncMock) -> None:
        mock_http.get_json.side_effect = RateApiError("down")

        snapshot = await source.fetch_latest("CNY")

        assert snapshot.base == "CNY"
        assert snapshot.rates["USD"] == Decimal("0.1381")
        assert "CNY" not in snapshot.rates

    @pytest.mark.asyncio
    async def test_unknown_base_reuses_usd_table(
        self, source: RateSource, mock_http: AsyncMock
    ) -> None:
        mock_http.get_json.side_effect = RateApiError("down")

        snapshot = await source.fetch_latest("EUR")

        assert snapshot.base == "EUR"
        assert snapshot.rates["CNY"] == Decimal("7.2456")
        assert "EUR" not in snapshot.rates

    def test_fallback_snapshot_is_independent_copy(self, source: RateSource) -> None:
        first = source.fallback_snapshot("USD")
        first.rates["CNY"] = Decimal("0")

        assert source.fallback_snapshot("USD").rates["CNY"] == Decimal("7.2456")


class TestFetchSupportedCurrencies:
    @pytest.mark.asyncio
    async def test_flat_mapping(self, source: RateSource, mock_http: AsyncMock) -> None:
        mock_http.get_json.return_value = {"USD": "US Dollar", "CNY": "Chinese Yuan"}

        result = await source.fetch_supported_currencies()

        mock_http.get_json.assert_awaited_once_with("/currencies")
        assert result == {"USD": "US Dollar", "CNY": "Chinese Yuan"}

    @pytest.mark.asyncio
    async def test_wrapped_mapping(self, source: RateSource, mock_http: AsyncMock) -> None:
        mock_http.get_json.return_value = {"currencies": {"EUR": "Euro"}}

        assert await source.fetch_supported_currencies() == {"EUR": "Euro"}

    @pytest.mark.asyncio
    async def test_failure_returns_builtin_table(
        self, source: RateSource, mock_http: AsyncMock
    ) -> None:
        mock_http.get_json.side_effect = RateApiError("down")

        result = await source.fetch_supported_currencies()

        assert result == FALLBACK_CURRENCY_NAMES
        assert len(result) == 20

    @pytest.mark.asyncio
    async def test_malformed_returns_builtin_table(
        self, source: RateSource, mock_http: AsyncMock
    ) -> None:
        mock_http.get_json.return_value = ["USD", "CNY"]

        assert await source.fetch_supported_currencies() == FALLBACK_CURRENCY_NAMES
