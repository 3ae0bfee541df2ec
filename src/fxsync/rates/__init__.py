"""Rate acquisition layer -- latest snapshots and historical series over HTTP."""

from fxsync.rates.http_client import HttpClient, HttpxClient
from fxsync.rates.rate_source import RateSource
from fxsync.rates.series_source import HistoricalSeriesSource

__all__ = ["HistoricalSeriesSource", "HttpClient", "HttpxClient", "RateSource"]
