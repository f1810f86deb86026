from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller extracted from a validated JWT.

    identity: canonical account address from the ``sub`` claim.  Mints
        require it to equal the receiver; admin operations require it to
        equal IssuerConfig.admin_identity.
    """

    identity: str

    def is_identity(self, identity: str) -> bool:
        return self.identity == identity
