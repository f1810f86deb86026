from __future__ import annotations

from dataclasses import dataclass

from kyc_issuer.core.config import Settings
from kyc_issuer.models.identity import normalize_identity


@dataclass(frozen=True, slots=True)
class IssuerConfig:
    """The single admin-mutable configuration record.

    issuer_identity: namespace for credential key derivation and the
        domain prefix of every mint challenge
    admin_identity: the only caller allowed to mutate config or credentials
    beneficiary_identity: receives mint fees
    public_key: raw 32-byte Ed25519 key that signs mint challenges
    fee_per_year: micro-USD charged per year of validity
    price_feed_id: 32-byte oracle feed for the fee asset's USD price
    """

    issuer_identity: str
    admin_identity: str
    beneficiary_identity: str
    public_key: bytes
    fee_per_year: int
    price_feed_id: bytes

    @staticmethod
    def from_settings(settings: Settings) -> IssuerConfig:
        return IssuerConfig(
            issuer_identity=normalize_identity(settings.issuer_identity),
            admin_identity=normalize_identity(settings.admin_identity),
            beneficiary_identity=normalize_identity(settings.beneficiary_identity),
            public_key=settings.mint_proof_public_key,
            fee_per_year=settings.fee_per_year,
            price_feed_id=settings.price_feed_id,
        )
