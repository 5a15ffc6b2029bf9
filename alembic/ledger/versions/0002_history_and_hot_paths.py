"""entry history table and dashboard query indexes

Revision ID: 0002_history_hot_paths
Revises: 0001_ledger
Create Date: 2026-10-14
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_history_hot_paths"
down_revision = "0001_ledger"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "ledger_entry_history",
        sa.Column("seq", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("entry_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("kind", sa.String(), nullable=True),
        sa.Column("method", sa.String(), nullable=True),
        sa.Column("player_name", sa.String(), nullable=True),
        sa.Column("player_tag", sa.String(), nullable=True),
        sa.Column("game_name", sa.String(), nullable=True),
        sa.Column("amount_base", sa.Float(), nullable=True),
        sa.Column("amount", sa.Float(), nullable=True),
        sa.Column("bonus_rate", sa.Float(), nullable=True),
        sa.Column("bonus_amount", sa.Float(), nullable=True),
        sa.Column("amount_final", sa.Float(), nullable=True),
        sa.Column("total_paid", sa.Float(), nullable=True),
        sa.Column("total_cashout", sa.Float(), nullable=True),
        sa.Column("remaining_pay", sa.Float(), nullable=True),
        sa.Column("extra_money", sa.Float(), nullable=True),
        sa.Column("reduction", sa.Float(), nullable=True),
        sa.Column("is_pending", sa.Boolean(), nullable=False),
        sa.Column("date", sa.String(length=10), nullable=True),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("snapshot", sa.JSON(), nullable=False),
        sa.Column("recorded_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("seq"),
        sa.UniqueConstraint("id", name="uq_ledger_entry_history_id"),
    )
    op.create_index("ix_ledger_entry_history_entry_id", "ledger_entry_history", ["entry_id"])

    op.create_index("ix_ledger_entries_username_date_kind", "ledger_entries", ["username", "date", "kind"])
    op.create_index("ix_ledger_entries_player_tag_date", "ledger_entries", ["player_tag", "date"])
    op.create_index("ix_ledger_entries_game_kind_created", "ledger_entries", ["game_name", "kind", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_ledger_entries_game_kind_created", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_player_tag_date", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_username_date_kind", table_name="ledger_entries")
    op.drop_index("ix_ledger_entry_history_entry_id", table_name="ledger_entry_history")
    op.drop_table("ledger_entry_history")
