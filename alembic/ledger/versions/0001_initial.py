"""initial ledger schema

Revision ID: 0001_ledger
Revises:
Create Date: 2026-10-12
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "game_balances",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("coins_recharged", sa.Float(), nullable=False),
        sa.Column("last_recharge_date", sa.String(length=10), nullable=True),
        sa.Column("total_coins", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("name"),
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("method", sa.String(), nullable=True),
        sa.Column("player_name", sa.String(), nullable=False),
        sa.Column("player_tag", sa.String(), nullable=False),
        sa.Column("game_name", sa.String(), nullable=False),
        sa.Column("amount_base", sa.Float(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=True),
        sa.Column("bonus_rate", sa.Float(), nullable=False),
        sa.Column("bonus_amount", sa.Float(), nullable=False),
        sa.Column("amount_final", sa.Float(), nullable=False),
        sa.Column("note", sa.String(), nullable=False),
        sa.Column("date", sa.String(length=10), nullable=True),
        sa.Column("total_paid", sa.Float(), nullable=False),
        sa.Column("total_cashout", sa.Float(), nullable=False),
        sa.Column("remaining_pay", sa.Float(), nullable=True),
        sa.Column("is_pending", sa.Boolean(), nullable=False),
        sa.Column("extra_money", sa.Float(), nullable=False),
        sa.Column("reduction", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ledger_entries_username", "ledger_entries", ["username"])
    op.create_index("ix_ledger_entries_created_at", "ledger_entries", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_ledger_entries_created_at", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_username", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_table("game_balances")
