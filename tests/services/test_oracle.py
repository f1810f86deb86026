"""Tests for the price oracle adapter and the Hermes feed client.

Hermes is exercised through httpx.MockTransport, so no test touches the
network.  Quote-shape rules (positive price, negative exponent) are
tested against StaticPriceFeed.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from kyc_issuer.core.errors import NegativePrice, OracleUnavailable, PositiveExponent
from kyc_issuer.services.oracle import (
    HermesPriceFeed,
    PriceFeed,
    PriceOracleAdapter,
    StaticPriceFeed,
)

FEED_ID = bytes.fromhex("03ae4db29ed4ae33d323568895aa00337e658e348b37509f5372ae51f0af00d5")


def _hermes_body(feed_hex: str, price: str = "812345678", expo: int = -8) -> dict:
    return {
        "binary": {"encoding": "hex", "data": ["00"]},
        "parsed": [
            {
                "id": feed_hex,
                "price": {
                    "price": price,
                    "conf": "401234",
                    "expo": expo,
                    "publish_time": 1_700_000_000,
                },
                "ema_price": {
                    "price": "810000000",
                    "conf": "400000",
                    "expo": expo,
                    "publish_time": 1_700_000_000,
                },
            }
        ],
    }


def _hermes(handler) -> HermesPriceFeed:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HermesPriceFeed("https://hermes.test/", client=client)


# ---- adapter ----


def test_adapter_returns_magnitude_and_negated_exponent() -> None:
    adapter = PriceOracleAdapter(StaticPriceFeed(10**9, -8))
    assert asyncio.run(adapter.price_of(FEED_ID)) == (10**9, 8)


@pytest.mark.parametrize("price", [0, -1, -(10**9)])
def test_adapter_rejects_non_positive_price(price: int) -> None:
    adapter = PriceOracleAdapter(StaticPriceFeed(price, -8))
    with pytest.raises(NegativePrice):
        asyncio.run(adapter.price_of(FEED_ID))


@pytest.mark.parametrize("expo", [0, 1, 8])
def test_adapter_rejects_non_negative_exponent(expo: int) -> None:
    adapter = PriceOracleAdapter(StaticPriceFeed(10**9, expo))
    with pytest.raises(PositiveExponent):
        asyncio.run(adapter.price_of(FEED_ID))


def test_adapter_propagates_unavailable_feed() -> None:
    class DownFeed:
        async def latest_quote(self, feed_id: bytes):
            raise OracleUnavailable("down")

    with pytest.raises(OracleUnavailable):
        asyncio.run(PriceOracleAdapter(DownFeed()).price_of(FEED_ID))


def test_static_feed_set_quote() -> None:
    feed = StaticPriceFeed(10**9, -8)
    feed.set_quote(5, -1)
    assert asyncio.run(PriceOracleAdapter(feed).price_of(FEED_ID)) == (5, 1)


def test_feeds_satisfy_protocol() -> None:
    assert isinstance(StaticPriceFeed(1, -1), PriceFeed)
    assert isinstance(HermesPriceFeed("https://hermes.test"), PriceFeed)


# ---- Hermes ----


def test_hermes_parses_latest_price() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_hermes_body(FEED_ID.hex()))

    quote = asyncio.run(_hermes(handler).latest_quote(FEED_ID))

    assert quote.price == 812_345_678
    assert quote.conf == 401_234
    assert quote.expo == -8
    assert quote.publish_time == 1_700_000_000
    assert seen[0].url.path == "/v2/updates/price/latest"
    assert seen[0].url.params["ids[]"] == FEED_ID.hex()
    assert seen[0].url.params["parsed"] == "true"


def test_hermes_accepts_prefixed_feed_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_hermes_body("0x" + FEED_ID.hex().upper()))

    quote = asyncio.run(_hermes(handler).latest_quote(FEED_ID))
    assert quote.price == 812_345_678


def test_hermes_negative_price_flows_to_adapter() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_hermes_body(FEED_ID.hex(), price="-5"))

    with pytest.raises(NegativePrice):
        asyncio.run(PriceOracleAdapter(_hermes(handler)).price_of(FEED_ID))


def test_hermes_http_error_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream down")

    with pytest.raises(OracleUnavailable, match="HTTP 503"):
        asyncio.run(_hermes(handler).latest_quote(FEED_ID))


def test_hermes_network_error_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(OracleUnavailable, match="network error"):
        asyncio.run(_hermes(handler).latest_quote(FEED_ID))


def test_hermes_invalid_json_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not json</html>")

    with pytest.raises(OracleUnavailable, match="invalid JSON"):
        asyncio.run(_hermes(handler).latest_quote(FEED_ID))


def test_hermes_missing_feed_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_hermes_body("bb" * 32))

    with pytest.raises(OracleUnavailable, match="not in response"):
        asyncio.run(_hermes(handler).latest_quote(FEED_ID))


def test_hermes_malformed_quote_is_unavailable() -> None:
    body = _hermes_body(FEED_ID.hex())
    del body["parsed"][0]["price"]["expo"]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps(body).encode())

    with pytest.raises(OracleUnavailable, match="malformed quote"):
        asyncio.run(_hermes(handler).latest_quote(FEED_ID))


def test_hermes_close_releases_client() -> None:
    feed = _hermes(lambda request: httpx.Response(200, json={}))

    asyncio.run(feed.close())
    assert feed._client is None
