from __future__ import annotations

from typing import Protocol

from kyc_issuer.models.issuer_config import IssuerConfig


class IssuerConfigRepo(Protocol):
    async def get(self) -> IssuerConfig: ...
    async def save(self, config: IssuerConfig) -> None: ...


class InMemoryIssuerConfigRepo:
    """Holds the one IssuerConfig record; seeded at startup, never deleted."""

    def __init__(self, initial: IssuerConfig) -> None:
        self._config = initial

    async def get(self) -> IssuerConfig:
        return self._config

    async def save(self, config: IssuerConfig) -> None:
        self._config = config

    def snapshot(self) -> IssuerConfig:
        return self._config

    def restore(self, snapshot: IssuerConfig) -> None:
        self._config = snapshot
