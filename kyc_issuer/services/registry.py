"""Credential registry.

Each identity's credential lives under a key derived from the issuer
namespace and the identity, so lookups never need a secondary index and
a second create for the same identity collides on the key:

    key = 0x || sha3_256(namespace || identity || KEY_DOMAIN || 0xFE)

Both namespace and identity are serialized as their 32 raw address bytes.

Credentials are soulbound: they are created with transferable=False,
nothing writes that field afterwards, and transfer() always raises.
Validity is ``verified and now < expiry``; the query is total and returns
False for identities with no credential.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable
from typing import NoReturn

from kyc_issuer.core.errors import (
    CredentialAlreadyExists,
    CredentialNotFound,
    TransferDisabled,
)
from kyc_issuer.models.credential import Credential
from kyc_issuer.models.identity import identity_bytes
from kyc_issuer.repos.credential_repo import CredentialRepo

logger = logging.getLogger(__name__)

KEY_DOMAIN = b"kyc_issuer::credential::Credential"
_DERIVE_SCHEME = b"\xfe"


def derive_key(namespace: str, identity: str) -> str:
    material = identity_bytes(namespace) + identity_bytes(identity) + KEY_DOMAIN
    return "0x" + hashlib.sha3_256(material + _DERIVE_SCHEME).hexdigest()


def _unix_now() -> int:
    return int(time.time())


class CredentialRegistry:
    def __init__(
        self,
        repo: CredentialRepo,
        namespace: str,
        clock: Callable[[], int] = _unix_now,
    ) -> None:
        self._repo = repo
        self._namespace = namespace
        self._clock = clock

    def derive_key(self, identity: str) -> str:
        return derive_key(self._namespace, identity)

    async def exists(self, key: str) -> bool:
        return await self._repo.get(key) is not None

    async def get(self, key: str) -> Credential | None:
        return await self._repo.get(key)

    async def create(
        self,
        key: str,
        *,
        owner_identity: str,
        tier: str,
        metadata_uri: str,
        expiry: int,
    ) -> Credential:
        if await self.exists(key):
            raise CredentialAlreadyExists(f"credential {key} already exists")
        credential = Credential.new(
            key=key,
            owner_identity=owner_identity,
            tier=tier,
            metadata_uri=metadata_uri,
            expiry=expiry,
            issued_at=self._clock(),
        )
        await self._repo.add(credential)
        return credential

    async def set_verified(self, key: str, value: bool) -> Credential:
        updated = await self._repo.set_verified(key, value)
        if updated is None:
            raise CredentialNotFound(f"no credential at {key}")
        return updated

    async def set_expiry(self, key: str, value: int) -> Credential:
        updated = await self._repo.set_expiry(key, value)
        if updated is None:
            raise CredentialNotFound(f"no credential at {key}")
        return updated

    async def is_valid(self, identity: str, now: int | None = None) -> bool:
        credential = await self._repo.get(self.derive_key(identity))
        if credential is None:
            return False
        return credential.is_valid_at(self._clock() if now is None else now)

    async def transfer(self, key: str, new_owner: str) -> NoReturn:
        logger.warning("Transfer attempt rejected key=%s to=%s", key, new_owner)
        raise TransferDisabled(f"credential {key} is soulbound and cannot be transferred")
