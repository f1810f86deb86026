from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from kyc_issuer.core.errors import CredentialAlreadyExists
from kyc_issuer.models.credential import Credential


class CredentialRepo(Protocol):
    """Credentials keyed by derived key.  Lookup only, never enumerated."""

    async def get(self, key: str) -> Credential | None: ...
    async def add(self, credential: Credential) -> None: ...
    async def set_verified(self, key: str, verified: bool) -> Credential | None: ...
    async def set_expiry(self, key: str, expiry: int) -> Credential | None: ...


class InMemoryCredentialRepo:
    def __init__(self) -> None:
        self._by_key: dict[str, Credential] = {}

    async def get(self, key: str) -> Credential | None:
        return self._by_key.get(key)

    async def add(self, credential: Credential) -> None:
        if credential.key in self._by_key:
            raise CredentialAlreadyExists(f"credential {credential.key} already exists")
        self._by_key[credential.key] = credential

    async def set_verified(self, key: str, verified: bool) -> Credential | None:
        c = self._by_key.get(key)
        if c is None:
            return None
        updated = replace(c, verified=verified)
        self._by_key[key] = updated
        return updated

    async def set_expiry(self, key: str, expiry: int) -> Credential | None:
        c = self._by_key.get(key)
        if c is None:
            return None
        updated = replace(c, expiry=expiry)
        self._by_key[key] = updated
        return updated

    # Records are frozen, so a shallow copy of the mapping is a full snapshot.
    def snapshot(self) -> dict[str, Credential]:
        return dict(self._by_key)

    def restore(self, snapshot: dict[str, Credential]) -> None:
        self._by_key = dict(snapshot)
