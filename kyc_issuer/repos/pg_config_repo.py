"""PostgreSQL implementation of IssuerConfigRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from kyc_issuer.db.tables import IssuerConfigRow
from kyc_issuer.models.issuer_config import IssuerConfig


class PgIssuerConfigRepo:
    """Single-row table; the first locking read seeds it from the startup config.

    ``for_update=False`` gives a plain read for query paths: no row lock,
    and a missing row reads as the startup config without being written.
    """

    def __init__(
        self, session: AsyncSession, initial: IssuerConfig, *, for_update: bool = True
    ) -> None:
        self._session = session
        self._initial = initial
        self._for_update = for_update

    async def get(self) -> IssuerConfig:
        stmt = select(IssuerConfigRow).where(IssuerConfigRow.id == 1)
        if self._for_update:
            # serializes admin writes against in-flight mints
            stmt = stmt.with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            if self._for_update:
                await self.save(self._initial)
            return self._initial
        return _row_to_config(row)

    async def save(self, config: IssuerConfig) -> None:
        values = {
            "issuer_identity": config.issuer_identity,
            "admin_identity": config.admin_identity,
            "beneficiary_identity": config.beneficiary_identity,
            "public_key": config.public_key,
            "fee_per_year": config.fee_per_year,
            "price_feed_id": config.price_feed_id,
        }
        stmt = (
            insert(IssuerConfigRow)
            .values(id=1, **values)
            .on_conflict_do_update(index_elements=[IssuerConfigRow.id], set_=values)
        )
        await self._session.execute(stmt)


def _row_to_config(row: IssuerConfigRow) -> IssuerConfig:
    return IssuerConfig(
        issuer_identity=row.issuer_identity,
        admin_identity=row.admin_identity,
        beneficiary_identity=row.beneficiary_identity,
        public_key=bytes(row.public_key),
        fee_per_year=int(row.fee_per_year),
        price_feed_id=bytes(row.price_feed_id),
    )
