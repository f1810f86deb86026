"""Mint proof challenges (Ed25519).

The issuing authority approves a mint off-line by signing a MintChallenge
that pins every mint parameter: receiver, metadata URI, expiry, paid
duration, tier, and the receiver's ledger sequence number.  The service
rebuilds the same challenge from the request plus the sequence number it
reads at redemption time, and checks the signature against the configured
public key.  Change any field, including tier, and the proof is void.

Canonical form is compact, key-sorted UTF-8 JSON.  The issuer identity and
the module/struct names act as a domain prefix so a signature made for
this protocol is never valid for another message type signed by the
same key.

The sequence number is shared with all of the receiver's other ledger
activity: any transaction the receiver sends before redeeming voids the
proof, and the signer has to issue a new one.
"""

from __future__ import annotations

import binascii
import json
import logging
from dataclasses import asdict, dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from kyc_issuer.core.errors import InvalidProof, MalformedSignature
from kyc_issuer.repos.ledger_repo import LedgerRepo

logger = logging.getLogger(__name__)

MODULE_NAME = "kyc_credential"
STRUCT_NAME = "MintChallenge"
SIGNATURE_LENGTH = 64


@dataclass(frozen=True, slots=True)
class MintChallenge:
    issuer_identity: str
    receiver_identity: str
    receiver_sequence_number: int
    metadata_uri: str
    expiry: int
    duration_paid: int
    tier: str
    module_name: str = MODULE_NAME
    struct_name: str = STRUCT_NAME

    def canonical_bytes(self) -> bytes:
        return json.dumps(
            asdict(self),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")

    def sign(self, private_key: Ed25519PrivateKey) -> bytes:
        """Signing side, used by the issuing authority's tooling."""
        return private_key.sign(self.canonical_bytes())


def decode_signature(raw: str | bytes) -> bytes:
    """Accept raw bytes or hex (with or without 0x).  Exactly 64 bytes."""
    if isinstance(raw, str):
        text = raw.strip().lower().removeprefix("0x")
        try:
            raw = binascii.unhexlify(text)
        except (binascii.Error, ValueError):
            raise MalformedSignature("signature is not valid hex") from None
    if len(raw) != SIGNATURE_LENGTH:
        raise MalformedSignature(
            f"signature must be {SIGNATURE_LENGTH} bytes (got {len(raw)})"
        )
    return raw


class ChallengeVerifier:
    """Pass/fail gate for a mint proof.

    Bound to one ledger view so the sequence number is read inside the
    same unit of work as the mint.
    """

    def __init__(self, ledger: LedgerRepo, issuer_identity: str) -> None:
        self._ledger = ledger
        self._issuer_identity = issuer_identity

    async def build_challenge(
        self,
        *,
        receiver_identity: str,
        metadata_uri: str,
        expiry: int,
        duration: int,
        tier: str,
    ) -> MintChallenge:
        sequence_number = await self._ledger.sequence_number(receiver_identity)
        return MintChallenge(
            issuer_identity=self._issuer_identity,
            receiver_identity=receiver_identity,
            receiver_sequence_number=sequence_number,
            metadata_uri=metadata_uri,
            expiry=expiry,
            duration_paid=duration,
            tier=tier,
        )

    async def verify(
        self,
        *,
        receiver_identity: str,
        metadata_uri: str,
        expiry: int,
        duration: int,
        tier: str,
        signature: str | bytes,
        public_key: bytes,
    ) -> None:
        """Raise MalformedSignature or InvalidProof; return None on success."""
        challenge = await self.build_challenge(
            receiver_identity=receiver_identity,
            metadata_uri=metadata_uri,
            expiry=expiry,
            duration=duration,
            tier=tier,
        )
        sig = decode_signature(signature)

        try:
            key = Ed25519PublicKey.from_public_bytes(public_key)
        except ValueError:
            logger.error("Configured mint proof public key is not a valid Ed25519 key")
            raise InvalidProof("issuer public key is not configured correctly") from None

        try:
            key.verify(sig, challenge.canonical_bytes())
        except InvalidSignature:
            logger.warning(
                "Mint proof rejected receiver=%s seq=%d tier=%s",
                receiver_identity,
                challenge.receiver_sequence_number,
                tier,
            )
            raise InvalidProof("mint proof does not match the requested mint") from None
