"""Latest exchange-rate snapshots with a static fallback.

RateSource asks the remote endpoint for the current rates of a base
currency. Anything short of a well-formed, all-positive response yields a
fallback snapshot built from the embedded tables and labelled
FALLBACK_SOURCE, so callers can show a degraded-mode indicator. Neither
public method raises.
"""

import time
from collections.abc import Callable
from decimal import Decimal
from typing import Annotated

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from fxsync.exceptions import RateApiError
from fxsync.logging import get_logger
from fxsync.models import API_SOURCE, FALLBACK_SOURCE, RateSnapshot
from fxsync.rates.fallback import FALLBACK_CURRENCY_NAMES, fallback_rates_for
from fxsync.rates.http_client import HttpClient

logger = get_logger(__name__)


class LatestRatesResponse(BaseModel):
    """Body of GET /latest/{base}. `timestamp` is in epoch seconds."""

    base: str
    rates: dict[str, Annotated[Decimal, Field(gt=0)]]
    timestamp: int = Field(validation_alias=AliasChoices("timestamp", "time_last_updated"))


class RateSource:
    """Fetches RateSnapshots, degrading to static fallback rates on failure.

    Usage:
        source = RateSource(HttpxClient(settings.rates))
        snapshot = await source.fetch_latest("USD")
        if snapshot.is_fallback:
            ...
    """

    def __init__(
        self,
        http: HttpClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._clock = clock

    async def fetch_latest(self, base: str = "USD") -> RateSnapshot:
        """Return the current snapshot for `base`, or the fallback snapshot."""
        base = base.upper()
        try:
            payload = await self._http.get_json(f"/latest/{base}")
            body = LatestRatesResponse.model_validate(payload)
        except (RateApiError, ValidationError) as e:
            logger.warning("rate_api_failed_using_fallback", base=base, error=str(e))
            return self.fallback_snapshot(base)

        rates = {
            code: rate for code, rate in body.rates.items() if code != body.base
        }
        snapshot = RateSnapshot(
            base=body.base,
            rates=rates,
            timestamp_ms=body.timestamp * 1000,
            source=API_SOURCE,
        )
        logger.debug("rates_fetched", base=snapshot.base, count=len(rates))
        return snapshot

    def fallback_snapshot(self, base: str) -> RateSnapshot:
        """Build the degraded-mode snapshot. Cannot fail.

        Bases without their own table reuse the USD table.
        """
        rates = fallback_rates_for(base)
        rates.pop(base, None)
        return RateSnapshot(
            base=base,
            rates=rates,
            timestamp_ms=int(self._clock() * 1000),
            source=FALLBACK_SOURCE,
        )

    async def fetch_supported_currencies(self) -> dict[str, str]:
        """Return {code: display name} from the API, or the built-in table."""
        try:
            payload = await self._http.get_json("/currencies")
        except RateApiError as e:
            logger.warning("currency_list_failed_using_fallback", error=str(e))
            return dict(FALLBACK_CURRENCY_NAMES)

        if isinstance(payload, dict) and isinstance(payload.get("currencies"), dict):
            payload = payload["currencies"]
        if not isinstance(payload, dict) or not payload or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in payload.items()
        ):
            logger.warning("currency_list_malformed_using_fallback")
            return dict(FALLBACK_CURRENCY_NAMES)
        return dict(payload)
