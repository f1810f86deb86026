"""Atomic scope for issuance and admin operations.

Every mutating operation runs inside ``async with uow.begin() as repos:``.
If the block raises, every write it made (fee debit, credential, config
change, sequence advance) is discarded and the exception propagates
unchanged.  Read-only queries use ``uow.read()``: no serialization, no
row locks, nothing committed.

  InMemoryUnitOfWork    one asyncio.Lock serializes operations; repos are
                        snapshotted on entry and restored on failure
  SqlAlchemyUnitOfWork  one session and one transaction per operation;
                        commit on success, rollback on exception
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kyc_issuer.models.issuer_config import IssuerConfig
from kyc_issuer.repos.config_repo import InMemoryIssuerConfigRepo, IssuerConfigRepo
from kyc_issuer.repos.credential_repo import CredentialRepo, InMemoryCredentialRepo
from kyc_issuer.repos.ledger_repo import InMemoryLedgerRepo, LedgerRepo
from kyc_issuer.repos.pg_config_repo import PgIssuerConfigRepo
from kyc_issuer.repos.pg_credential_repo import PgCredentialRepo
from kyc_issuer.repos.pg_ledger_repo import PgLedgerRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Repos:
    credentials: CredentialRepo
    config: IssuerConfigRepo
    ledger: LedgerRepo


class UnitOfWork(Protocol):
    def begin(self) -> AbstractAsyncContextManager[Repos]: ...
    def read(self) -> AbstractAsyncContextManager[Repos]: ...


class InMemoryUnitOfWork:
    def __init__(
        self,
        initial_config: IssuerConfig,
        *,
        credentials: InMemoryCredentialRepo | None = None,
        ledger: InMemoryLedgerRepo | None = None,
    ) -> None:
        self.credentials = credentials or InMemoryCredentialRepo()
        self.config = InMemoryIssuerConfigRepo(initial_config)
        self.ledger = ledger or InMemoryLedgerRepo()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[Repos]:
        async with self._lock:
            saved = (
                self.credentials.snapshot(),
                self.config.snapshot(),
                self.ledger.snapshot(),
            )
            try:
                yield Repos(self.credentials, self.config, self.ledger)
            except BaseException:
                self.credentials.restore(saved[0])
                self.config.restore(saved[1])
                self.ledger.restore(saved[2])
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[Repos]:
        yield Repos(self.credentials, self.config, self.ledger)


class SqlAlchemyUnitOfWork:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        initial_config: IssuerConfig,
    ) -> None:
        self._session_factory = session_factory
        self._initial_config = initial_config

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[Repos]:
        async with self._session_factory() as session:
            try:
                yield Repos(
                    credentials=PgCredentialRepo(session),
                    config=PgIssuerConfigRepo(session, self._initial_config),
                    ledger=PgLedgerRepo(session),
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[Repos]:
        async with self._session_factory() as session:
            yield Repos(
                credentials=PgCredentialRepo(session),
                config=PgIssuerConfigRepo(session, self._initial_config, for_update=False),
                ledger=PgLedgerRepo(session),
            )
