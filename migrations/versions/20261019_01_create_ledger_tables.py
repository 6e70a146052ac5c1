"""create ledger tables

Revision ID: 3f9c1d7a2b40
Revises: 
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f9c1d7a2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="member"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_seen_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "wallets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("wallet_type", sa.String(length=20), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("user_id", "wallet_type", name="uq_wallets_user_type"),
        sa.CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )
    op.create_index("ix_wallets_user_id", "wallets", ["user_id"])

    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("wallet_id", sa.String(length=36), sa.ForeignKey("wallets.id"), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(length=30), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("reference_id", sa.String(length=36)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ledger_transactions_wallet_id", "ledger_transactions", ["wallet_id"])
    op.create_index("ix_ledger_transactions_user_id", "ledger_transactions", ["user_id"])
    op.create_index("ix_ledger_transactions_reference_id", "ledger_transactions", ["reference_id"])

    op.create_table(
        "cash_requests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("direction", sa.String(length=10), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("fee_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("net_amount", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(length=30), nullable=False),
        sa.Column("proof_ref", sa.String(length=255)),
        sa.Column("reference_no", sa.String(length=100)),
        sa.Column("account_name", sa.String(length=100)),
        sa.Column("account_number", sa.String(length=30)),
        sa.Column("has_active_loan", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pin_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text()),
        sa.Column("reviewed_by", sa.String(length=36)),
        sa.Column("reviewed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("amount > 0", name="ck_cash_requests_amount_positive"),
    )
    op.create_index("ix_cash_requests_user_id", "cash_requests", ["user_id"])
    op.create_index("ix_cash_requests_direction", "cash_requests", ["direction"])
    op.create_index("ix_cash_requests_status", "cash_requests", ["status"])

    op.create_table(
        "loans",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("lender_id", sa.String(length=36), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("borrower_id", sa.String(length=36), sa.ForeignKey("members.id")),
        sa.Column("principal_amount", sa.Integer(), nullable=False),
        sa.Column("interest_rate", sa.Numeric(8, 4), nullable=False),
        sa.Column("interest_amount", sa.Integer(), nullable=False),
        sa.Column("processing_fee", sa.Integer(), nullable=False),
        sa.Column("total_repayment", sa.Integer(), nullable=False),
        sa.Column("term_days", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("escrow_wallet_id", sa.String(length=36), sa.ForeignKey("wallets.id")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("accepted_at", sa.DateTime(timezone=True)),
        sa.Column("due_at", sa.DateTime(timezone=True)),
        sa.Column("repaid_at", sa.DateTime(timezone=True)),
        sa.Column("defaulted_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("principal_amount > 0", name="ck_loans_principal_positive"),
    )
    op.create_index("ix_loans_lender_id", "loans", ["lender_id"])
    op.create_index("ix_loans_borrower_id", "loans", ["borrower_id"])
    op.create_index("ix_loans_status", "loans", ["status"])
    op.create_index("ix_loans_due_at", "loans", ["due_at"])


def downgrade() -> None:
    op.drop_index("ix_loans_due_at", table_name="loans")
    op.drop_index("ix_loans_status", table_name="loans")
    op.drop_index("ix_loans_borrower_id", table_name="loans")
    op.drop_index("ix_loans_lender_id", table_name="loans")
    op.drop_table("loans")

    op.drop_index("ix_cash_requests_status", table_name="cash_requests")
    op.drop_index("ix_cash_requests_direction", table_name="cash_requests")
    op.drop_index("ix_cash_requests_user_id", table_name="cash_requests")
    op.drop_table("cash_requests")

    op.drop_index("ix_ledger_transactions_reference_id", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_user_id", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_wallet_id", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")

    op.drop_index("ix_wallets_user_id", table_name="wallets")
    op.drop_table("wallets")

    op.drop_table("members")
