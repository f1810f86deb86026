"""Process-wide issuance wiring.

Builds the one MintOrchestrator the API uses, choosing backends from
settings the same way everywhere:

  DATABASE_URL set        → SqlAlchemyUnitOfWork (PostgreSQL)
  otherwise               → InMemoryUnitOfWork
  STATIC_ORACLE_PRICE set → StaticPriceFeed
  otherwise               → HermesPriceFeed(ORACLE_URL)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from kyc_issuer.core.config import SETTINGS, Settings
from kyc_issuer.db.engine import async_session_factory
from kyc_issuer.models.issuer_config import IssuerConfig
from kyc_issuer.services.mint_events import LoggingMintEventSink
from kyc_issuer.services.oracle import (
    HermesPriceFeed,
    PriceFeed,
    PriceOracleAdapter,
    StaticPriceFeed,
)
from kyc_issuer.services.orchestrator import MintOrchestrator
from kyc_issuer.services.unit_of_work import (
    InMemoryUnitOfWork,
    SqlAlchemyUnitOfWork,
    UnitOfWork,
)

logger = logging.getLogger(__name__)


def build_price_feed(settings: Settings) -> PriceFeed:
    if settings.static_oracle_price is not None:
        return StaticPriceFeed(settings.static_oracle_price, settings.static_oracle_expo)
    return HermesPriceFeed(settings.oracle_url, timeout=settings.oracle_timeout_seconds)


def build_unit_of_work(settings: Settings) -> UnitOfWork:
    initial = IssuerConfig.from_settings(settings)
    if async_session_factory is not None:
        return SqlAlchemyUnitOfWork(async_session_factory, initial)
    return InMemoryUnitOfWork(initial)


price_feed = build_price_feed(SETTINGS)
orchestrator = MintOrchestrator(
    build_unit_of_work(SETTINGS),
    PriceOracleAdapter(price_feed),
    LoggingMintEventSink(),
)


@asynccontextmanager
async def lifespan_oracle():
    """Release the oracle's HTTP connection pool on shutdown."""
    if isinstance(price_feed, HermesPriceFeed):
        logger.info("Price oracle: Hermes at %s", price_feed.base_url)
    else:
        logger.info("Price oracle: static quote")
    yield
    if isinstance(price_feed, HermesPriceFeed):
        await price_feed.close()
