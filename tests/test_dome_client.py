import asyncio

import httpx
import pytest
import respx

from crossarb.connectors.dome import DomeClient
from crossarb.core.errors import MalformedResponse, UpstreamUnavailable
from crossarb.utils.ratelimit import RateLimiter


BASE = "https://dome.test/v1"
NOW = 1_800_000_000.0


def _client(**kwargs):
    return DomeClient(api_key="k-123", base_url=BASE, clock=lambda: NOW, **kwargs)


@respx.mock
def test_listing_page_sends_auth_and_paging():
    route = respx.get(f"{BASE}/kalshi/markets").mock(
        return_value=httpx.Response(200, json={"markets": [{"ticker": "A"}, {"ticker": "B"}]})
    )

    async def _run():
        async with _client() as client:
            return await client.fetch_listing_page("kalshi", "open", 100, 200)

    records = asyncio.run(_run())
    assert [r["ticker"] for r in records] == ["A", "B"]
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer k-123"
    assert request.url.params["status"] == "open"
    assert request.url.params["limit"] == "100"
    assert request.url.params["offset"] == "200"


@respx.mock
def test_orderbook_query_uses_venue_key_and_lookback():
    poly = respx.get(f"{BASE}/polymarket/orderbooks").mock(return_value=httpx.Response(200, json={"snapshots": []}))
    kalshi = respx.get(f"{BASE}/kalshi/orderbooks").mock(return_value=httpx.Response(200, json={"snapshots": []}))

    async def _run():
        async with _client(lookback_seconds=3600) as client:
            await client.fetch_orderbook("polymarket", "tok-1")
            await client.fetch_orderbook("kalshi", "FED-26DEC-CUT")

    asyncio.run(_run())
    params = poly.calls.last.request.url.params
    assert params["token_id"] == "tok-1"
    assert params["end_time"] == str(int(NOW * 1000))
    assert params["start_time"] == str(int(NOW * 1000) - 3_600_000)
    assert params["limit"] == "1"
    assert kalshi.calls.last.request.url.params["ticker"] == "FED-26DEC-CUT"


@respx.mock
def test_missing_orderbook_is_none():
    respx.get(f"{BASE}/kalshi/orderbooks").mock(return_value=httpx.Response(404))

    async def _run():
        async with _client() as client:
            return await client.fetch_orderbook("kalshi", "NOPE")

    assert asyncio.run(_run()) is None


@respx.mock
def test_error_status_raises_upstream_unavailable():
    respx.get(f"{BASE}/polymarket/markets").mock(return_value=httpx.Response(503))

    async def _run():
        async with _client() as client:
            await client.fetch_listing_page("polymarket", "open", 10, 0)

    with pytest.raises(UpstreamUnavailable) as info:
        asyncio.run(_run())
    assert info.value.status_code == 503


@respx.mock
def test_timeout_raises_upstream_unavailable():
    respx.get(f"{BASE}/kalshi/orderbooks").mock(side_effect=httpx.ReadTimeout("slow"))

    async def _run():
        async with _client() as client:
            await client.fetch_orderbook("kalshi", "SLOW")

    with pytest.raises(UpstreamUnavailable):
        asyncio.run(_run())


@respx.mock
def test_connect_error_is_retried():
    route = respx.get(f"{BASE}/kalshi/markets").mock(
        side_effect=[httpx.ConnectError("refused"), httpx.Response(200, json=[])]
    )

    async def _run():
        async with _client() as client:
            return await client.fetch_listing_page("kalshi", "open", 10, 0)

    assert asyncio.run(_run()) == []
    assert route.call_count == 2


@respx.mock
def test_non_json_body_is_malformed():
    respx.get(f"{BASE}/kalshi/markets").mock(return_value=httpx.Response(200, text="<html>oops</html>"))

    async def _run():
        async with _client() as client:
            await client.fetch_listing_page("kalshi", "open", 10, 0)

    with pytest.raises(MalformedResponse):
        asyncio.run(_run())


@respx.mock
def test_requests_go_through_rate_limiter():
    respx.get(f"{BASE}/kalshi/markets").mock(return_value=httpx.Response(200, json=[]))
    limiter = RateLimiter(max_requests=100, period_seconds=1.0)

    async def _run():
        async with _client(rate_limiter=limiter) as client:
            for _ in range(3):
                await client.fetch_listing_page("kalshi", "open", 10, 0)

    asyncio.run(_run())
    assert limiter.total_acquired == 3


def test_unknown_platform_rejected():
    async def _run():
        async with _client() as client:
            await client.fetch_orderbook("manifold", "x")

    with pytest.raises(ValueError):
        asyncio.run(_run())
