"""
CoinGecko price source tests, served by httpx.MockTransport (no network).
"""

import asyncio
import time

import httpx
import pytest

from delphi_canonical.errors import UpstreamUnavailable
from oracle_tee.price_source import CoinGeckoPriceSource


def _history(usd):
    return {"id": "bitcoin", "market_data": {"current_price": {"usd": usd, "eur": 1.0}}}


def _source(handler, **kwargs):
    return CoinGeckoPriceSource(transport=httpx.MockTransport(handler), base_url="https://cg.test/api/v3", **kwargs)


@pytest.mark.asyncio
async def test_fetch_price_success():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json=_history(42261.0412))

    price = await _source(handler).fetch_price("bitcoin", "01-01-2024")

    assert price == 42_261_041_200_000
    assert seen[0].url.path == "/api/v3/coins/bitcoin/history"
    assert seen[0].url.params["date"] == "01-01-2024"
    assert seen[0].url.params["localization"] == "false"
    assert "x-cg-demo-api-key" not in seen[0].headers


@pytest.mark.asyncio
async def test_api_key_header_is_sent():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json=_history(1))

    await _source(handler, api_key="CG-demo").fetch_price("sui", "15-03-2025")
    assert seen[0].headers["x-cg-demo-api-key"] == "CG-demo"


@pytest.mark.asyncio
@pytest.mark.parametrize("coin, coin_id", [("polygon", "matic-network"), ("avalanche", "avalanche-2"), ("sui", "sui")])
async def test_coin_id_mapping(coin, coin_id):
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json=_history(0.5))

    await _source(handler).fetch_price(coin, "01-01-2024")
    assert seen[0].url.path == f"/api/v3/coins/{coin_id}/history"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 429, 500])
async def test_http_errors_are_upstream_unavailable(status):
    source = _source(lambda request: httpx.Response(status, json={"error": "nope"}))
    with pytest.raises(UpstreamUnavailable, match=str(status)):
        await source.fetch_price("bitcoin", "01-01-2024")


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"id": "bitcoin"},
    {"market_data": {}},
    {"market_data": {"current_price": {"eur": 1.0}}},
    {"market_data": {"current_price": {"usd": None}}},
    {"market_data": {"current_price": {"usd": -3}}},
    [],
])
async def test_missing_market_data(body):
    """A date with no market data must fail, never sign a guessed price"""
    source = _source(lambda request: httpx.Response(200, json=body))
    with pytest.raises(UpstreamUnavailable):
        await source.fetch_price("bitcoin", "01-01-2009")


@pytest.mark.asyncio
async def test_non_json_body():
    source = _source(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(UpstreamUnavailable, match="non-JSON"):
        await source.fetch_price("bitcoin", "01-01-2024")


@pytest.mark.asyncio
async def test_timeout():
    def handler(request: httpx.Request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamUnavailable, match="timed out"):
        await _source(handler, timeout=0.5).fetch_price("bitcoin", "01-01-2024")


@pytest.mark.asyncio
async def test_connection_error():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUnavailable, match="unreachable"):
        await _source(handler).fetch_price("bitcoin", "01-01-2024")


@pytest.mark.asyncio
async def test_trickling_body_hits_overall_deadline():
    """A body sent one byte at a time never trips a per-read timeout; the deadline must"""

    async def trickle():
        yield b"{"
        while True:
            await asyncio.sleep(0.05)
            yield b" "

    async def handler(request: httpx.Request):
        return httpx.Response(200, content=trickle())

    started = time.monotonic()
    with pytest.raises(UpstreamUnavailable, match="timed out"):
        await _source(handler, timeout=0.3).fetch_price("bitcoin", "01-01-2024")
    assert time.monotonic() - started < 2.0
