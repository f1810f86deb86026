"""create issuer tables

Revision ID: 3b1f0c6e2a91
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1f0c6e2a91"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

U64 = sa.Numeric(20, 0)


def upgrade() -> None:
    op.create_table(
        "issuer_config",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("issuer_identity", sa.String(length=66), nullable=False),
        sa.Column("admin_identity", sa.String(length=66), nullable=False),
        sa.Column("beneficiary_identity", sa.String(length=66), nullable=False),
        sa.Column("public_key", sa.LargeBinary(length=32), nullable=False),
        sa.Column("fee_per_year", U64, nullable=False),
        sa.Column("price_feed_id", sa.LargeBinary(length=32), nullable=False),
        sa.CheckConstraint("id = 1", name="issuer_config_singleton"),
    )
    op.create_table(
        "credentials",
        sa.Column("key", sa.String(length=66), primary_key=True),
        sa.Column("owner_identity", sa.String(length=66), nullable=False),
        sa.Column("tier", sa.String(length=128), nullable=False),
        sa.Column("metadata_uri", sa.String(length=2048), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("expiry", U64, nullable=False),
        sa.Column("issued_at", U64, nullable=False),
        sa.Column(
            "transferable",
            sa.Boolean(),
            sa.CheckConstraint("transferable = false", name="credentials_soulbound"),
            nullable=False,
            server_default=sa.false(),
        ),
    )
    op.create_table(
        "ledger_accounts",
        sa.Column("identity", sa.String(length=66), primary_key=True),
        sa.Column("balance", U64, nullable=False, server_default="0"),
        sa.Column("sequence_number", U64, nullable=False, server_default="0"),
        sa.CheckConstraint("balance >= 0", name="ledger_balance_non_negative"),
    )


def downgrade() -> None:
    op.drop_table("ledger_accounts")
    op.drop_table("credentials")
    op.drop_table("issuer_config")
