"""Register ledger: registers, movements, transactions, expenses, closings

Revision ID: 20261018_daybook_ledger
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_daybook_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "registers",
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("tenant_id", "id"),
    )
    op.create_index("ix_registers_is_active", "registers", ["is_active"])

    op.create_table(
        "cash_movements",
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("register_id", sa.String(length=64), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("performed_by", sa.String(length=255), nullable=False),
        sa.Column("operator_id", sa.String(length=64), nullable=True),
        sa.Column("on_behalf_of_id", sa.String(length=64), nullable=True),
        sa.Column("transaction_id", sa.String(length=64), nullable=True),
        sa.Column("expense_id", sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint("tenant_id", "id"),
    )
    op.create_index("ix_cash_movements_register_date", "cash_movements", ["tenant_id", "register_id", "date"])
    op.create_index("ix_cash_movements_register_id", "cash_movements", ["register_id"])
    op.create_index("ix_cash_movements_type", "cash_movements", ["type"])
    op.create_index("ix_cash_movements_transaction_id", "cash_movements", ["transaction_id"])
    op.create_index("ix_cash_movements_expense_id", "cash_movements", ["expense_id"])

    op.create_table(
        "transactions",
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("amount_paid", sa.Float(), nullable=False),
        sa.Column("payment_status", sa.String(length=16), nullable=False),
        sa.Column("payment_method", sa.String(length=16), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_locked", sa.Boolean(), nullable=False),
        sa.Column("seller_id", sa.String(length=64), nullable=False),
        sa.Column("seller_name", sa.String(length=255), nullable=False),
        sa.Column("operator_id", sa.String(length=64), nullable=True),
        sa.Column("on_behalf_of_id", sa.String(length=64), nullable=True),
        sa.Column("customer_id", sa.String(length=64), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("supplier_id", sa.String(length=64), nullable=True),
        sa.Column("supplier_name", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("tenant_id", "id"),
    )
    op.create_index("ix_transactions_seller_date", "transactions", ["tenant_id", "seller_id", "date"])
    op.create_index("ix_transactions_seller_id", "transactions", ["seller_id"])
    op.create_index("ix_transactions_type", "transactions", ["type"])
    op.create_index("ix_transactions_payment_status", "transactions", ["payment_status"])
    op.create_index("ix_transactions_is_locked", "transactions", ["is_locked"])

    op.create_table(
        "expenses",
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("register_id", sa.String(length=64), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("paid_by", sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint("tenant_id", "id"),
    )
    op.create_index("ix_expenses_register_id", "expenses", ["register_id"])

    op.create_table(
        "cash_closings",
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("id", sa.String(length=96), nullable=False),
        sa.Column("register_id", sa.String(length=64), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("business_day", sa.Date(), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.String(length=255), nullable=False),
        sa.Column("total_sales", sa.Float(), nullable=False),
        sa.Column("amount_cash", sa.Float(), nullable=False),
        sa.Column("amount_mobile_money", sa.Float(), nullable=False),
        sa.Column("amount_card", sa.Float(), nullable=False),
        sa.Column("total_in", sa.Float(), nullable=False),
        sa.Column("total_out", sa.Float(), nullable=False),
        sa.Column("bank_out", sa.Float(), nullable=False),
        sa.Column("opening_balance", sa.Float(), nullable=False),
        sa.Column("cash_expected", sa.Float(), nullable=False),
        sa.Column("cash_real", sa.Float(), nullable=False),
        sa.Column("difference", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("auto_closed", sa.Boolean(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("locked_transaction_count", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("tenant_id", "id"),
    )
    op.create_index("ix_cash_closings_register_day", "cash_closings", ["tenant_id", "register_id", "business_day"])
    op.create_index("ix_cash_closings_register_id", "cash_closings", ["register_id"])


def downgrade():
    op.drop_table("cash_closings")
    op.drop_table("expenses")
    op.drop_table("transactions")
    op.drop_table("cash_movements")
    op.drop_table("registers")
