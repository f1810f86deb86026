from __future__ import annotations

import logging
from dataclasses import replace

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from kyc_issuer.core.errors import Unauthorized
from kyc_issuer.core.metrics import ADMIN_MUTATIONS, ADMIN_REJECTIONS
from kyc_issuer.models.issuer_config import IssuerConfig
from kyc_issuer.models.principal import Principal
from kyc_issuer.repos.config_repo import IssuerConfigRepo

logger = logging.getLogger(__name__)

PRICE_FEED_ID_LENGTH = 32


class IssuerAuthority:
    """Owns the issuer configuration and the admin check.

    Every mutation starts with require_admin: the caller must be the
    configured admin identity, otherwise Unauthorized and nothing changes.
    """

    def __init__(self, repo: IssuerConfigRepo) -> None:
        self._repo = repo

    async def require_admin(self, caller: Principal, operation: str) -> IssuerConfig:
        config = await self._repo.get()
        if not caller.is_identity(config.admin_identity):
            ADMIN_REJECTIONS.labels(operation=operation).inc()
            logger.warning(
                "Admin operation denied: caller=%s operation=%s",
                caller.identity,
                operation,
            )
            raise Unauthorized(f"{operation} requires the admin identity")
        return config

    async def set_public_key(self, caller: Principal, public_key: bytes) -> IssuerConfig:
        config = await self.require_admin(caller, "set_public_key")
        # Raises ValueError for anything that is not a 32-byte Ed25519 key.
        Ed25519PublicKey.from_public_bytes(public_key)
        return await self._save(replace(config, public_key=public_key), "set_public_key")

    async def set_fee_rate(self, caller: Principal, fee_per_year: int) -> IssuerConfig:
        config = await self.require_admin(caller, "set_fee_rate")
        if fee_per_year < 0:
            raise ValueError("fee rate must be non-negative")
        return await self._save(replace(config, fee_per_year=fee_per_year), "set_fee_rate")

    async def set_price_feed(self, caller: Principal, price_feed_id: bytes) -> IssuerConfig:
        config = await self.require_admin(caller, "set_price_feed")
        if len(price_feed_id) != PRICE_FEED_ID_LENGTH:
            raise ValueError(f"price feed id must be {PRICE_FEED_ID_LENGTH} bytes")
        return await self._save(replace(config, price_feed_id=price_feed_id), "set_price_feed")

    async def _save(self, config: IssuerConfig, operation: str) -> IssuerConfig:
        await self._repo.save(config)
        ADMIN_MUTATIONS.labels(operation=operation).inc()
        logger.info("Issuer config updated: %s", operation, extra={"operation": operation})
        return config
