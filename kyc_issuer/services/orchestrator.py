"""End-to-end credential issuance.

mint() quotes outside the unit of work and then commits in one:

  1. probe the registry: an identity that already holds a credential
     fails with DuplicateCredential before any fee or proof is looked at
  2. duration > 0: quote the fee asset on the configured feed.  No lock is
     held while the oracle call is in flight, so queries and admin writes
     are never stuck behind a slow feed.
  3. inside the unit of work: re-read the config and repeat the duplicate
     probe.  If the feed id moved while the quote was in flight, leave the
     scope and quote again on the new feed.  Otherwise compute the fee at
     the current rate and debit it from the receiver to the beneficiary
     (duration == 0 skips the oracle and the debit entirely)
  4. verify the authority's signature over the mint challenge
  5. create the credential under the receiver's derived key
  6. advance the receiver's sequence number (the mint is their activity)

Any failure rolls back steps 3-6 together.  After commit the mint is
reported to the event sink.

A credential's lifecycle after issuance is admin-only: set_verified
toggles it, set_expiry moves its expiry, and nothing ever removes it, so
a given identity can be issued exactly once.
"""


from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import NoReturn

from kyc_issuer.core.errors import (
    CredentialAlreadyExists,
    CredentialNotFound,
    DuplicateCredential,
    IssuanceError,
    OracleUnavailable,
    Unauthorized,
)
from kyc_issuer.core.metrics import MINT_ATTEMPTS, MINT_FEES_COLLECTED
from kyc_issuer.models.credential import Credential
from kyc_issuer.models.identity import normalize_identity
from kyc_issuer.models.issuer_config import IssuerConfig
from kyc_issuer.models.principal import Principal
from kyc_issuer.services.challenge import ChallengeVerifier
from kyc_issuer.services.fees import U64_MAX, required_fee
from kyc_issuer.services.issuer_authority import IssuerAuthority
from kyc_issuer.services.mint_events import MintEventSink
from kyc_issuer.services.oracle import PriceOracleAdapter
from kyc_issuer.services.registry import CredentialRegistry
from kyc_issuer.services.unit_of_work import Repos, UnitOfWork

logger = logging.getLogger(__name__)

_QUOTE_ATTEMPTS = 3


def _unix_now() -> int:
    return int(time.time())


class _FeedChanged(Exception):
    """The configured price feed was replaced while a quote was in flight."""

    def __init__(self, feed_id: bytes) -> None:
        super().__init__(feed_id.hex())
        self.feed_id = feed_id


class MintOrchestrator:
    def __init__(
        self,
        uow: UnitOfWork,
        oracle: PriceOracleAdapter,
        events: MintEventSink,
        clock: Callable[[], int] = _unix_now,
    ) -> None:
        self._uow = uow
        self._oracle = oracle
        self._events = events
        self._clock = clock

    def _registry(self, repos: Repos, config: IssuerConfig) -> CredentialRegistry:
        return CredentialRegistry(repos.credentials, config.issuer_identity, self._clock)

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    async def mint(
        self,
        caller: Principal,
        *,
        receiver: str,
        metadata_uri: str,
        expiry: int,
        duration: int,
        tier: str,
        signature: str | bytes,
    ) -> str:
        """Issue a credential to ``receiver``.  Returns the derived key."""
        receiver = normalize_identity(receiver)
        if not 0 <= expiry <= U64_MAX or not 0 <= duration <= U64_MAX:
            raise ValueError("expiry and duration must be unsigned 64-bit values")

        try:
            if not caller.is_identity(receiver):
                raise Unauthorized("credentials can only be minted by their receiver")
            key, fee = await self._quote_and_mint(
                receiver=receiver,
                metadata_uri=metadata_uri,
                expiry=expiry,
                duration=duration,
                tier=tier,
                signature=signature,
            )
        except IssuanceError as e:
            MINT_ATTEMPTS.labels(result=e.code).inc()
            logger.warning(
                "Mint failed receiver=%s error=%s: %s",
                receiver,
                e.code,
                e,
                extra={"receiver": receiver},
            )
            raise

        MINT_ATTEMPTS.labels(result="ok").inc()
        if fee:
            MINT_FEES_COLLECTED.inc(fee)
        logger.info(
            "Credential minted receiver=%s key=%s tier=%s fee=%d",
            receiver,
            key,
            tier,
            fee,
            extra={"receiver": receiver, "credential_key": key},
        )

        try:
            await self._events.record_mint(receiver, key)
        except Exception:
            logger.exception("Mint event sink failed receiver=%s key=%s", receiver, key)

        return key

    async def _quote_and_mint(
        self,
        *,
        receiver: str,
        metadata_uri: str,
        expiry: int,
        duration: int,
        tier: str,
        signature: str | bytes,
    ) -> tuple[str, int]:
        async with self._uow.read() as repos:
            config = await repos.config.get()
            registry = self._registry(repos, config)
            key = registry.derive_key(receiver)
            if await registry.exists(key):
                raise DuplicateCredential(f"{receiver} already holds credential {key}")

        feed_id = config.price_feed_id
        for _ in range(_QUOTE_ATTEMPTS):
            quote = await self._oracle.price_of(feed_id) if duration > 0 else None
            try:
                return await self._mint_atomically(
                    receiver=receiver,
                    metadata_uri=metadata_uri,
                    expiry=expiry,
                    duration=duration,
                    tier=tier,
                    signature=signature,
                    feed_id=feed_id,
                    quote=quote,
                )
            except _FeedChanged as e:
                logger.info(
                    "Price feed changed during quote receiver=%s feed=%s",
                    receiver,
                    e.feed_id.hex(),
                    extra={"receiver": receiver},
                )
                feed_id = e.feed_id
        raise OracleUnavailable("price feed kept changing while the mint fee was quoted")

    async def _mint_atomically(
        self,
        *,
        receiver: str,
        metadata_uri: str,
        expiry: int,
        duration: int,
        tier: str,
        signature: str | bytes,
        feed_id: bytes,
        quote: tuple[int, int] | None,
    ) -> tuple[str, int]:
        async with self._uow.begin() as repos:
            config = await repos.config.get()
            registry = self._registry(repos, config)
            key = registry.derive_key(receiver)

            if await registry.exists(key):
                raise DuplicateCredential(f"{receiver} already holds credential {key}")

            fee = 0
            if duration > 0:
                if config.price_feed_id != feed_id:
                    raise _FeedChanged(config.price_feed_id)
                fee = required_fee(duration, config.fee_per_year, quote)
                await repos.ledger.transfer(receiver, config.beneficiary_identity, fee)

            verifier = ChallengeVerifier(repos.ledger, config.issuer_identity)
            await verifier.verify(
                receiver_identity=receiver,
                metadata_uri=metadata_uri,
                expiry=expiry,
                duration=duration,
                tier=tier,
                signature=signature,
                public_key=config.public_key,
            )

            try:
                await registry.create(
                    key,
                    owner_identity=receiver,
                    tier=tier,
                    metadata_uri=metadata_uri,
                    expiry=expiry,
                )
            except CredentialAlreadyExists as e:
                raise DuplicateCredential(
                    f"{receiver} already holds credential {key}"
                ) from e

            await repos.ledger.advance_sequence(receiver)
        return key, fee

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    async def issuer_config(self, caller: Principal) -> IssuerConfig:
        async with self._uow.read() as repos:
            return await IssuerAuthority(repos.config).require_admin(caller, "read_config")

    async def set_public_key(self, caller: Principal, public_key: bytes) -> IssuerConfig:
        async with self._uow.begin() as repos:
            return await IssuerAuthority(repos.config).set_public_key(caller, public_key)

    async def set_fee_rate(self, caller: Principal, fee_per_year: int) -> IssuerConfig:
        async with self._uow.begin() as repos:
            return await IssuerAuthority(repos.config).set_fee_rate(caller, fee_per_year)

    async def set_price_feed(self, caller: Principal, price_feed_id: bytes) -> IssuerConfig:
        async with self._uow.begin() as repos:
            return await IssuerAuthority(repos.config).set_price_feed(caller, price_feed_id)

    async def set_verified(self, caller: Principal, identity: str, value: bool) -> Credential:
        identity = normalize_identity(identity)
        async with self._uow.begin() as repos:
            config = await IssuerAuthority(repos.config).require_admin(caller, "set_verified")
            registry = self._registry(repos, config)
            updated = await registry.set_verified(registry.derive_key(identity), value)
        logger.info(
            "Credential verified=%s identity=%s",
            value,
            identity,
            extra={"receiver": identity, "credential_key": updated.key},
        )
        return updated

    async def set_expiry(self, caller: Principal, identity: str, value: int) -> Credential:
        identity = normalize_identity(identity)
        if not 0 <= value <= U64_MAX:
            raise ValueError("expiry must be an unsigned 64-bit value")
        async with self._uow.begin() as repos:
            config = await IssuerAuthority(repos.config).require_admin(caller, "set_expiry")
            registry = self._registry(repos, config)
            updated = await registry.set_expiry(registry.derive_key(identity), value)
        logger.info(
            "Credential expiry=%d identity=%s",
            value,
            identity,
            extra={"receiver": identity, "credential_key": updated.key},
        )
        return updated

    async def transfer(self, caller: Principal, key: str, new_owner: str) -> NoReturn:
        new_owner = normalize_identity(new_owner)
        async with self._uow.read() as repos:
            config = await repos.config.get()
            registry = self._registry(repos, config)
            if not await registry.exists(key.lower()):
                raise CredentialNotFound(f"no credential at {key}")
            logger.info("Transfer requested by caller=%s key=%s", caller.identity, key)
            await registry.transfer(key.lower(), new_owner)

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    async def credential_key_of(self, identity: str) -> str:
        return (await self.get_credential(identity)).key

    async def get_credential(self, identity: str) -> Credential:
        identity = normalize_identity(identity)
        async with self._uow.read() as repos:
            config = await repos.config.get()
            registry = self._registry(repos, config)
            credential = await registry.get(registry.derive_key(identity))
        if credential is None:
            raise CredentialNotFound(f"{identity} holds no credential")
        return credential

    async def _get_by_key(self, key: str) -> Credential:
        async with self._uow.read() as repos:
            credential = await repos.credentials.get(key.lower())
        if credential is None:
            raise CredentialNotFound(f"no credential at {key}")
        return credential

    async def tier_of(self, key: str) -> str:
        return (await self._get_by_key(key)).tier

    async def expiry_of(self, key: str) -> int:
        return (await self._get_by_key(key)).expiry

    async def is_valid(self, identity: str, now: int | None = None) -> bool:
        identity = normalize_identity(identity)
        async with self._uow.read() as repos:
            config = await repos.config.get()
            return await self._registry(repos, config).is_valid(identity, now)

    async def required_fee(self, duration: int) -> int:
        """Fee for ``duration`` seconds at the current rate and a fresh quote.

        Zero duration is the documented zero-fee path and never touches
        the oracle.
        """
        if duration == 0:
            return 0
        async with self._uow.read() as repos:
            config = await repos.config.get()
        quote = await self._oracle.price_of(config.price_feed_id)
        return required_fee(duration, config.fee_per_year, quote)
