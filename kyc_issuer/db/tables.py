"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in kyc_issuer/models/.
Repos convert between rows and dataclasses.

Unsigned 64-bit quantities (fees, balances, timestamps) are stored as
NUMERIC(20, 0): BIGINT is signed and would truncate the top half of the
u64 range.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Integer, LargeBinary, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from kyc_issuer.db.engine import Base

U64 = Numeric(20, 0)


class IssuerConfigRow(Base):
    __tablename__ = "issuer_config"
    __table_args__ = (CheckConstraint("id = 1", name="issuer_config_singleton"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    issuer_identity: Mapped[str] = mapped_column(String(66), nullable=False)
    admin_identity: Mapped[str] = mapped_column(String(66), nullable=False)
    beneficiary_identity: Mapped[str] = mapped_column(String(66), nullable=False)
    public_key: Mapped[bytes] = mapped_column(LargeBinary(32), nullable=False)
    fee_per_year: Mapped[Decimal] = mapped_column(U64, nullable=False)
    price_feed_id: Mapped[bytes] = mapped_column(LargeBinary(32), nullable=False)


class CredentialRow(Base):
    __tablename__ = "credentials"

    # Derived key; the primary key constraint is what makes a second
    # concurrent mint for the same identity fail.
    key: Mapped[str] = mapped_column(String(66), primary_key=True)
    owner_identity: Mapped[str] = mapped_column(String(66), nullable=False)
    tier: Mapped[str] = mapped_column(String(128), nullable=False)
    metadata_uri: Mapped[str] = mapped_column(String(2048), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expiry: Mapped[Decimal] = mapped_column(U64, nullable=False)
    issued_at: Mapped[Decimal] = mapped_column(U64, nullable=False)
    transferable: Mapped[bool] = mapped_column(
        Boolean,
        CheckConstraint("transferable = false", name="credentials_soulbound"),
        nullable=False,
        default=False,
    )


class LedgerAccountRow(Base):
    __tablename__ = "ledger_accounts"
    __table_args__ = (CheckConstraint("balance >= 0", name="ledger_balance_non_negative"),)

    identity: Mapped[str] = mapped_column(String(66), primary_key=True)
    balance: Mapped[Decimal] = mapped_column(U64, nullable=False, default=0)
    sequence_number: Mapped[Decimal] = mapped_column(U64, nullable=False, default=0)
