"""PostgreSQL implementation of LedgerRepo."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from kyc_issuer.core.errors import InsufficientFunds
from kyc_issuer.db.tables import LedgerAccountRow


class PgLedgerRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def sequence_number(self, identity: str) -> int:
        stmt = select(LedgerAccountRow.sequence_number).where(
            LedgerAccountRow.identity == identity
        )
        value = (await self._session.execute(stmt)).scalar_one_or_none()
        return int(value) if value is not None else 0

    async def advance_sequence(self, identity: str) -> int:
        stmt = (
            insert(LedgerAccountRow)
            .values(identity=identity, balance=0, sequence_number=1)
            .on_conflict_do_update(
                index_elements=[LedgerAccountRow.identity],
                set_={"sequence_number": LedgerAccountRow.sequence_number + 1},
            )
            .returning(LedgerAccountRow.sequence_number)
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def balance(self, identity: str) -> int:
        stmt = select(LedgerAccountRow.balance).where(LedgerAccountRow.identity == identity)
        value = (await self._session.execute(stmt)).scalar_one_or_none()
        return int(value) if value is not None else 0

    async def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("transfer amount must be non-negative")
        if amount == 0:
            return

        # Conditional debit: the WHERE clause is the balance check, so two
        # concurrent debits can never both pass on the same funds.
        debit = (
            update(LedgerAccountRow)
            .where(
                LedgerAccountRow.identity == sender,
                LedgerAccountRow.balance >= amount,
            )
            .values(balance=LedgerAccountRow.balance - amount)
        )
        result = await self._session.execute(debit)
        if result.rowcount == 0:
            available = await self.balance(sender)
            raise InsufficientFunds(f"{sender} holds {available}, fee requires {amount}")

        credit = (
            insert(LedgerAccountRow)
            .values(identity=recipient, balance=amount, sequence_number=0)
            .on_conflict_do_update(
                index_elements=[LedgerAccountRow.identity],
                set_={"balance": LedgerAccountRow.balance + amount},
            )
        )
        await self._session.execute(credit)
