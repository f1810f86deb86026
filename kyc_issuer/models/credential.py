from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Credential:
    """Soulbound KYC credential, one per identity, stored under its derived key."""

    key: str
    owner_identity: str
    tier: str
    metadata_uri: str
    verified: bool
    expiry: int  # unix seconds; valid while now < expiry
    issued_at: int
    # No operation sets this back to True once a credential exists.
    transferable: bool = False

    @staticmethod
    def new(
        *,
        key: str,
        owner_identity: str,
        tier: str,
        metadata_uri: str,
        expiry: int,
        issued_at: int,
    ) -> Credential:
        return Credential(
            key=key,
            owner_identity=owner_identity,
            tier=tier,
            metadata_uri=metadata_uri,
            verified=True,
            expiry=expiry,
            issued_at=issued_at,
            transferable=False,
        )

    def is_valid_at(self, now: int) -> bool:
        return self.verified and now < self.expiry
