"""PostgreSQL implementation of CredentialRepo."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from kyc_issuer.core.errors import CredentialAlreadyExists
from kyc_issuer.db.tables import CredentialRow
from kyc_issuer.models.credential import Credential


class PgCredentialRepo:
    """Satisfies the CredentialRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, key: str) -> Credential | None:
        stmt = select(CredentialRow).where(CredentialRow.key == key)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_credential(row)

    async def add(self, credential: Credential) -> None:
        row = CredentialRow(
            key=credential.key,
            owner_identity=credential.owner_identity,
            tier=credential.tier,
            metadata_uri=credential.metadata_uri,
            verified=credential.verified,
            expiry=credential.expiry,
            issued_at=credential.issued_at,
            transferable=False,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError as e:
            # The losing side of two concurrent mints for one identity.
            raise CredentialAlreadyExists(
                f"credential {credential.key} already exists"
            ) from e

    async def set_verified(self, key: str, verified: bool) -> Credential | None:
        stmt = update(CredentialRow).where(CredentialRow.key == key).values(verified=verified)
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(key)

    async def set_expiry(self, key: str, expiry: int) -> Credential | None:
        stmt = update(CredentialRow).where(CredentialRow.key == key).values(expiry=expiry)
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(key)


def _row_to_credential(row: CredentialRow) -> Credential:
    return Credential(
        key=row.key,
        owner_identity=row.owner_identity,
        tier=row.tier,
        metadata_uri=row.metadata_uri,
        verified=row.verified,
        expiry=int(row.expiry),
        issued_at=int(row.issued_at),
        transferable=row.transferable,
    )
