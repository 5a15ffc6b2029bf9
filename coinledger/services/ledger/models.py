"""Ledger database models: entries, their audit history, and game balances."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from coinledger.common.db import Base


class LedgerEntry(Base):
    """One recorded transaction against a game.

    The autoincrement `id` doubles as creation order; pending resolution relies
    on it to decide which deposit/redeem row is the latest for a player tag.
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index("ix_ledger_entries_username_date_kind", "username", "date", "kind"),
        Index("ix_ledger_entries_player_tag_date", "player_tag", "date"),
        Index("ix_ledger_entries_game_kind_created", "game_name", "kind", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String, index=True)
    created_by: Mapped[str] = mapped_column(String)
    kind: Mapped[str] = mapped_column(String)
    method: Mapped[str | None] = mapped_column(String, nullable=True)
    player_name: Mapped[str] = mapped_column(String, default="")
    player_tag: Mapped[str] = mapped_column(String, default="")
    game_name: Mapped[str] = mapped_column(String)
    amount_base: Mapped[float] = mapped_column(Float)
    amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    bonus_rate: Mapped[float] = mapped_column(Float, default=0)
    bonus_amount: Mapped[float] = mapped_column(Float, default=0)
    amount_final: Mapped[float] = mapped_column(Float)
    note: Mapped[str] = mapped_column(String, default="")
    date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    total_paid: Mapped[float] = mapped_column(Float, default=0)
    total_cashout: Mapped[float] = mapped_column(Float, default=0)
    # Nullable so rows imported without it fall back to cashout - paid.
    remaining_pay: Mapped[float | None] = mapped_column(Float, nullable=True, default=0)
    is_pending: Mapped[bool] = mapped_column(Boolean, default=False)
    extra_money: Mapped[float] = mapped_column(Float, default=0)
    reduction: Mapped[float] = mapped_column(Float, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class LedgerHistoryRecord(Base):
    """Append-only audit row written alongside every entry mutation."""

    __tablename__ = "ledger_entry_history"

    # Insertion order; breaks ties between rows sharing a created_at.
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String, unique=True, default=lambda: str(uuid4()))
    # No FK: history must outlive the entry it describes.
    entry_id: Mapped[int] = mapped_column(Integer, index=True)
    action: Mapped[str] = mapped_column(String)
    username: Mapped[str | None] = mapped_column(String, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    kind: Mapped[str | None] = mapped_column(String, nullable=True)
    method: Mapped[str | None] = mapped_column(String, nullable=True)
    player_name: Mapped[str | None] = mapped_column(String, nullable=True)
    player_tag: Mapped[str | None] = mapped_column(String, nullable=True)
    game_name: Mapped[str | None] = mapped_column(String, nullable=True)
    amount_base: Mapped[float | None] = mapped_column(Float, nullable=True)
    amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    bonus_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    bonus_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    amount_final: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_paid: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_cashout: Mapped[float | None] = mapped_column(Float, nullable=True)
    remaining_pay: Mapped[float | None] = mapped_column(Float, nullable=True)
    extra_money: Mapped[float | None] = mapped_column(Float, nullable=True)
    reduction: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_pending: Mapped[bool] = mapped_column(Boolean, default=False)
    date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    note: Mapped[str | None] = mapped_column(String, nullable=True)
    snapshot: Mapped[dict] = mapped_column(JSON)
    recorded_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class GameBalance(Base):
    """Materialized coin counter for one game, maintained only through deltas."""

    __tablename__ = "game_balances"

    name: Mapped[str] = mapped_column(String, primary_key=True)
    coins_recharged: Mapped[float] = mapped_column(Float, default=0)
    last_recharge_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    total_coins: Mapped[float] = mapped_column(Float, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
