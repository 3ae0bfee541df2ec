"""HTTP GET capability used by the rate and series sources.

Defines the abstract contract plus an httpx-backed implementation. Rate
source code depends only on HttpClient, keeping transport details isolated
in HttpxClient.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

import httpx

from fxsync.config import RateApiSettings
from fxsync.exceptions import RateApiError
from fxsync.logging import get_logger

logger = get_logger(__name__)


class HttpClient(ABC):
    """Abstract base class for JSON-over-HTTP clients."""

    @abstractmethod
    async def get_json(self, path: str) -> Any:
        """GET `path` relative to the configured base URL and decode the JSON body.

        JSON numbers with a fraction or exponent decode to Decimal, never float.

        Raises RateApiError on transport failure, non-2xx status or an
        undecodable body.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release connection resources."""
        ...


class HttpxClient(HttpClient):
    """Concrete HttpClient using a lazily created httpx.AsyncClient."""

    def __init__(self, settings: RateApiSettings) -> None:
        self._settings = settings
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._settings.base_url,
                timeout=self._settings.timeout_seconds,
            )
        return self._client

    async def get_json(self, path: str) -> Any:
        client = self._get_client()
        try:
            response = await client.get(path)
            response.raise_for_status()
            return response.json(parse_float=Decimal)
        except httpx.HTTPError as e:
            raise RateApiError(f"GET {path} failed: {e}") from e
        except ValueError as e:
            raise RateApiError(f"GET {path} returned invalid JSON: {e}") from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("http_client_closed", base_url=self._settings.base_url)
