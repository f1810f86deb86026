"""Mint fee computation.

    cost_usd       = duration * fee_per_year / SECONDS_PER_YEAR
    asset_per_usd  = BASE_UNITS_PER_ASSET * 10**neg_exponent / price
    fee            = cost_usd * asset_per_usd / USD_SCALE

fee_per_year and cost_usd are micro-USD (USD_SCALE); the result is in
base units of the fee asset (10**8 per whole unit).  Every step is
unsigned integer division, truncating, and every intermediate must fit
in 64 bits; leaving that range raises ArithmeticOverflow instead of
wrapping or silently growing.
"""

from __future__ import annotations

from kyc_issuer.core.errors import ArithmeticOverflow

U64_MAX = 2**64 - 1

SECONDS_PER_YEAR = 31_536_000
BASE_UNITS_PER_ASSET = 10**8
USD_SCALE = 10**6


def _u64(value: int, what: str) -> int:
    if value < 0 or value > U64_MAX:
        raise ArithmeticOverflow(f"{what} out of u64 range: {value}")
    return value


def required_fee(
    duration_seconds: int,
    annual_fee_usd: int,
    quote: tuple[int, int],
) -> int:
    """Fee in base units for ``duration_seconds`` of validity.

    ``quote`` is ``(price_magnitude, neg_exponent)`` as returned by
    PriceOracleAdapter.price_of.  Monotone non-decreasing in duration for
    a fixed rate and quote.
    """
    price, neg_exponent = quote
    _u64(duration_seconds, "duration")
    _u64(annual_fee_usd, "fee rate")
    _u64(price, "price")
    _u64(neg_exponent, "exponent")
    if price == 0:
        raise ArithmeticOverflow("price magnitude is zero")

    cost_usd = _u64(duration_seconds * annual_fee_usd, "duration * fee rate")
    cost_usd //= SECONDS_PER_YEAR

    # 10**19 is the largest power of ten below 2**64.
    if neg_exponent > 19:
        raise ArithmeticOverflow(f"10^{neg_exponent} out of u64 range")
    asset_per_usd = _u64(
        BASE_UNITS_PER_ASSET * 10**neg_exponent, "base units * 10^exponent"
    )
    asset_per_usd //= price

    fee = _u64(cost_usd * asset_per_usd, "cost * asset per usd")
    return fee // USD_SCALE
