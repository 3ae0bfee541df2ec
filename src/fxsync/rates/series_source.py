"""Day-indexed historical rate series with per-point synthetic fallback.

HistoricalSeriesSource issues one GET per day in the requested span, all
in flight together (bounded by a semaphore). A failed day is resynthesized
from the mock anchor table rather than dropped, so a series always has
exactly `days` points. If no day could be fetched at all, the whole series
is replaced by a synthetic one with wider per-day noise.

Synthetic noise is drawn from random.Random seeded with the configured
seed, the pair and the date. The same request therefore always produces
the same series, whatever order the concurrent fetches finish in.
"""

import asyncio
import random
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from pydantic import BaseModel, Field, ValidationError

from fxsync.config import SynthesisSettings
from fxsync.exceptions import RateApiError
from fxsync.logging import get_logger
from fxsync.models import SeriesPoint
from fxsync.rates.fallback import mock_base_rate
from fxsync.rates.http_client import HttpClient

logger = get_logger(__name__)

_RATE_QUANTUM = Decimal("0.000001")


class HistoricalRatesResponse(BaseModel):
    """Body of GET /{yyyy-mm-dd}/{base}."""

    base: str
    rates: dict[str, Annotated[Decimal, Field(gt=0)]]


class HistoricalSeriesSource:
    """Fetches or synthesizes a rate series for a currency pair.

    Usage:
        source = HistoricalSeriesSource(http, settings.synthesis)
        points = await source.fetch_series("USD", "CNY", 7)
    """

    def __init__(
        self,
        http: HttpClient,
        synthesis: SynthesisSettings,
        max_concurrent_requests: int = 8,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._synthesis = synthesis
        self._max_concurrent = max(1, max_concurrent_requests)
        self._clock = clock

    async def fetch_series(self, base: str, target: str, days: int) -> list[SeriesPoint]:
        """Return `days` points for base→target, ascending by timestamp.

        Days run from `days` days ago up to yesterday. Empty for days <= 0.
        """
        if days <= 0:
            return []

        base, target = base.upper(), target.upper()
        now = datetime.fromtimestamp(self._clock(), tz=UTC)
        semaphore = asyncio.Semaphore(self._max_concurrent)
        moments = [now - timedelta(days=days - i) for i in range(days)]

        results = await asyncio.gather(
            *(self._fetch_point(base, target, moment, semaphore) for moment in moments),
            return_exceptions=True,
        )

        points: list[SeriesPoint] = []
        fetched = 0
        for result in results:
            if isinstance(result, BaseException):
                logger.error("series_point_dropped", base=base, target=target, error=str(result))
                continue
            point, from_network = result
            points.append(point)
            fetched += from_network

        if fetched == 0:
            logger.warning(
                "historical_source_unreachable_synthesizing",
                base=base,
                target=target,
                days=days,
            )
            return self.synthesize_series(base, target, days)

        points.sort(key=lambda p: p.timestamp_ms)
        logger.debug(
            "series_fetched",
            base=base,
            target=target,
            days=days,
            synthesized=days - fetched,
        )
        return points

    async def _fetch_point(
        self,
        base: str,
        target: str,
        moment: datetime,
        semaphore: asyncio.Semaphore,
    ) -> tuple[SeriesPoint, bool]:
        """Fetch one day. Returns (point, True) or a synthetic (point, False)."""
        date_str = moment.date().isoformat()
        timestamp_ms = int(moment.timestamp() * 1000)
        try:
            async with semaphore:
                payload = await self._http.get_json(f"/{date_str}/{base}")
            body = HistoricalRatesResponse.model_validate(payload)
            if target == base:
                rate = Decimal("1")
            elif target in body.rates:
                rate = body.rates[target]
            else:
                raise RateApiError(f"{target} missing from {date_str} rates")
        except (RateApiError, ValidationError) as e:
            logger.debug("series_point_failed", date=date_str, error=str(e))
            return self._synthetic_point(base, target, moment, self._synthesis.point_volatility), False

        return SeriesPoint(date=date_str, rate=rate, timestamp_ms=timestamp_ms), True

    def synthesize_series(self, base: str, target: str, days: int) -> list[SeriesPoint]:
        """Build a wholly synthetic series ending today, oldest first."""
        if days <= 0:
            return []
        now = datetime.fromtimestamp(self._clock(), tz=UTC)
        return [
            self._synthetic_point(
                base,
                target,
                now - timedelta(days=i),
                self._synthesis.series_volatility,
            )
            for i in range(days - 1, -1, -1)
        ]

    def _synthetic_point(
        self,
        base: str,
        target: str,
        moment: datetime,
        volatility: float,
    ) -> SeriesPoint:
        date_str = moment.date().isoformat()
        rng = random.Random(f"{self._synthesis.seed}:{base}/{target}:{date_str}:{volatility}")
        factor = 1 + (rng.random() - 0.5) * volatility
        rate = (mock_base_rate(base, target) * Decimal(str(factor))).quantize(
            _RATE_QUANTUM, rounding=ROUND_HALF_UP
        )
        return SeriesPoint(date=date_str, rate=rate, timestamp_ms=int(moment.timestamp() * 1000))
