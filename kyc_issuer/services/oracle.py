"""Price oracle adapter.

Fees are quoted in USD but paid in the ledger's native asset, so each
paid mint needs one live price for the configured feed.  Quotes come from
a PriceFeed:

  HermesPriceFeed   Pyth Hermes REST API, the production source
  StaticPriceFeed   fixed quote for local dev and tests

PriceOracleAdapter sits in front of either and enforces the quote shape
the fee math relies on: a strictly positive price and a strictly negative
exponent, i.e. ``price * 10**-n``.  A quote that violates either is an
error, never a zero price.  There is no caching and no staleness check
beyond what the feed itself enforces.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from kyc_issuer.core.errors import (
    NegativePrice,
    OracleError,
    OracleUnavailable,
    PositiveExponent,
)
from kyc_issuer.core.metrics import ORACLE_QUOTES

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """Raw signed quote: the value is ``price * 10**expo``."""

    price: int
    conf: int
    expo: int
    publish_time: int


@runtime_checkable
class PriceFeed(Protocol):
    async def latest_quote(self, feed_id: bytes) -> PriceQuote:
        """Fetch the latest quote for a feed without validating it."""
        ...


class StaticPriceFeed:
    """Returns the same quote for every feed.  Tests swap it with set_quote()."""

    def __init__(self, price: int, expo: int, conf: int = 0) -> None:
        self._price = price
        self._expo = expo
        self._conf = conf

    def set_quote(self, price: int, expo: int) -> None:
        self._price = price
        self._expo = expo

    async def latest_quote(self, feed_id: bytes) -> PriceQuote:
        return PriceQuote(
            price=self._price,
            conf=self._conf,
            expo=self._expo,
            publish_time=int(time.time()),
        )


class HermesPriceFeed:
    """Pyth Hermes client.

    GET {base_url}/v2/updates/price/latest?ids[]=<feed hex>&parsed=true
    returns ``{"parsed": [{"id": ..., "price": {"price": "...", "conf": "...",
    "expo": -8, "publish_time": ...}}]}``.  Price and conf arrive as
    decimal strings.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def latest_quote(self, feed_id: bytes) -> PriceQuote:
        feed_hex = feed_id.hex()
        url = f"{self.base_url}/v2/updates/price/latest"

        try:
            client = await self._get_client()
            response = await client.get(url, params={"ids[]": feed_hex, "parsed": "true"})
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise OracleUnavailable(
                f"price feed {feed_hex}: HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise OracleUnavailable(f"price feed {feed_hex}: network error: {e}") from e
        except ValueError as e:
            raise OracleUnavailable(f"price feed {feed_hex}: invalid JSON: {e}") from e

        return _parse_hermes_quote(body, feed_hex)


def _parse_hermes_quote(body: object, feed_hex: str) -> PriceQuote:
    try:
        entries = body["parsed"]  # type: ignore[index]
        entry = next(
            e for e in entries if str(e["id"]).lower().removeprefix("0x") == feed_hex
        )
        price = entry["price"]
        return PriceQuote(
            price=int(price["price"]),
            conf=int(price["conf"]),
            expo=int(price["expo"]),
            publish_time=int(price["publish_time"]),
        )
    except StopIteration:
        raise OracleUnavailable(f"price feed {feed_hex}: not in response") from None
    except (KeyError, TypeError, ValueError) as e:
        raise OracleUnavailable(f"price feed {feed_hex}: malformed quote: {e!r}") from e


class PriceOracleAdapter:
    def __init__(self, feed: PriceFeed) -> None:
        self._feed = feed

    async def price_of(self, feed_id: bytes) -> tuple[int, int]:
        """Return ``(magnitude, neg_exponent)`` for the feed's latest quote.

        Raises NegativePrice if price <= 0, PositiveExponent if expo >= 0,
        OracleUnavailable if the feed could not be read.
        """
        try:
            quote = await self._feed.latest_quote(feed_id)
        except OracleError:
            ORACLE_QUOTES.labels(result="unavailable").inc()
            logger.warning("Price feed %s unavailable", feed_id.hex())
            raise

        if quote.price <= 0:
            ORACLE_QUOTES.labels(result="negative_price").inc()
            logger.warning(
                "Rejected quote with non-positive price feed=%s price=%d",
                feed_id.hex(),
                quote.price,
            )
            raise NegativePrice(f"price feed {feed_id.hex()} returned price {quote.price}")

        if quote.expo >= 0:
            ORACLE_QUOTES.labels(result="positive_exponent").inc()
            logger.warning(
                "Rejected quote with non-negative exponent feed=%s expo=%d",
                feed_id.hex(),
                quote.expo,
            )
            raise PositiveExponent(
                f"price feed {feed_id.hex()} returned exponent {quote.expo}"
            )

        ORACLE_QUOTES.labels(result="ok").inc()
        logger.debug(
            "Quote feed=%s price=%d expo=%d published=%d",
            feed_id.hex(),
            quote.price,
            quote.expo,
            quote.publish_time,
        )
        return quote.price, -quote.expo
