"""Tests for HttpxClient.

Routes are mocked with respx; no real network calls are made.
"""

from decimal import Decimal

import httpx
import pytest
import respx

from fxsync.config import RateApiSettings
from fxsync.exceptions import RateApiError
from fxsync.rates.http_client import HttpxClient

BASE_URL = "https://rates.test/v4"


@pytest.fixture
def client() -> HttpxClient:
    return HttpxClient(RateApiSettings(base_url=BASE_URL, timeout_seconds=1.0))


class TestGetJson:
    @pytest.mark.asyncio
    @respx.mock
    async def test_returns_decoded_body(self, client: HttpxClient) -> None:
        route = respx.get(f"{BASE_URL}/latest/USD").mock(
            return_value=httpx.Response(200, json={"base": "USD", "rates": {"CNY": 7.2}})
        )

        body = await client.get_json("/latest/USD")

        assert route.called
        assert body == {"base": "USD", "rates": {"CNY": Decimal("7.2")}}
        assert isinstance(body["rates"]["CNY"], Decimal)
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_fractional_numbers_decode_without_float(self, client: HttpxClient) -> None:
        respx.get(f"{BASE_URL}/latest/USD").mock(
            return_value=httpx.Response(
                200, content=b'{"base": "USD", "rates": {"CNY": 7.123456789012345678, "JPY": 150}}'
            )
        )

        body = await client.get_json("/latest/USD")

        assert body["rates"]["CNY"] == Decimal("7.123456789012345678")
        assert body["rates"]["JPY"] == 150
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_status_raises(self, client: HttpxClient) -> None:
        respx.get(f"{BASE_URL}/latest/XXX").mock(return_value=httpx.Response(404))

        with pytest.raises(RateApiError):
            await client.get_json("/latest/XXX")
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error_raises(self, client: HttpxClient) -> None:
        respx.get(f"{BASE_URL}/latest/USD").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(RateApiError):
            await client.get_json("/latest/USD")
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_json_raises(self, client: HttpxClient) -> None:
        respx.get(f"{BASE_URL}/latest/USD").mock(
            return_value=httpx.Response(200, content=b"<html>maintenance</html>")
        )

        with pytest.raises(RateApiError, match="invalid JSON"):
            await client.get_json("/latest/USD")
        await client.close()


@pytest.mark.asyncio
async def test_close_is_idempotent(client: HttpxClient) -> None:
    await client.close()
    await client.close()
