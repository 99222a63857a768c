"""Initial schema: users, account types, accounts

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "bank_users",
        sa.Column("user_id", sa.String(35), primary_key=True),
        sa.Column("password_hash", sa.String(60), nullable=False),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("street", sa.String(100), nullable=False),
        sa.Column("city", sa.String(60), nullable=False),
        sa.Column("country_state", sa.String(55), nullable=False),
        sa.Column("country", sa.String(55), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    account_types = op.create_table(
        "bank_account_types",
        sa.Column("account_type", sa.String(30), primary_key=True),
    )
    op.bulk_insert(account_types, [{"account_type": "Checking"}, {"account_type": "Savings"}])

    op.create_table(
        "bank_user_accounts",
        sa.Column("account_id", sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column("bank_user_id", sa.String(35), sa.ForeignKey("bank_users.user_id"), nullable=False),
        sa.Column(
            "account_type",
            sa.String(30),
            sa.ForeignKey("bank_account_types.account_type"),
            nullable=False,
        ),
        sa.Column("balance", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("balance >= 0", name="ck_bank_user_accounts_balance_non_negative"),
    )
    op.create_index("ix_bank_user_accounts_bank_user_id", "bank_user_accounts", ["bank_user_id"])


def downgrade() -> None:
    op.drop_index("ix_bank_user_accounts_bank_user_id", table_name="bank_user_accounts")
    op.drop_table("bank_user_accounts")
    op.drop_table("bank_account_types")
    op.drop_table("bank_users")
