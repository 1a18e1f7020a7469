"""billing core initial schema

Revision ID: 5c1d2e7a9b40
Revises:
Create Date: 2026-10-19 09:12:44.318220

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1d2e7a9b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, plans, subscriptions and the payment ledger."""
    op.create_table(
        "app_user",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "pricing_plan",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_minor", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("token_allowance", sa.Integer(), nullable=False),
        sa.Column("billing_cycle_days", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "user_subscription",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("plan_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("token_allowance", sa.Integer(), nullable=False),
        sa.Column("token_balance", sa.Integer(), nullable=False),
        sa.Column("tokens_used", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["pricing_plan.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("user_subscription_user_idx", "user_subscription", ["user_id"])
    op.create_table(
        "payment_transaction",
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("plan_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.JSON(), nullable=True),
        sa.Column("payment_id", sa.String(length=128), nullable=True),
        sa.Column("signature", sa.String(length=256), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["pricing_plan.id"]),
        sa.PrimaryKeyConstraint("order_id"),
    )
    op.create_index("payment_transaction_user_idx", "payment_transaction", ["user_id"])
    op.create_index("payment_transaction_status_idx", "payment_transaction", ["status"])


def downgrade() -> None:
    """Drop every billing core table."""
    op.drop_index("payment_transaction_status_idx", table_name="payment_transaction")
    op.drop_index("payment_transaction_user_idx", table_name="payment_transaction")
    op.drop_table("payment_transaction")
    op.drop_index("user_subscription_user_idx", table_name="user_subscription")
    op.drop_table("user_subscription")
    op.drop_table("pricing_plan")
    op.drop_table("app_user")
