"""API request/response schemas for ledger endpoints.

Request bodies only enforce JSON types. Business validation (required fields,
enums, finite non-negative amounts) happens in the service layer so callers
get the offending field back.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class EntryCreateRequest(BaseModel):
    """Transaction payload accepted by `POST /entries`."""

    username: str | None = None
    created_by: str | None = None
    kind: str | None = None
    method: str | None = None
    player_name: str | None = None
    player_tag: str | None = None
    game_name: str | None = None
    amount_base: float | None = None
    amount: float | None = None
    bonus_rate: float | None = None
    bonus_amount: float | None = None
    amount_final: float | None = None
    note: str | None = None
    date: str | None = None
    total_paid: float | None = None
    total_cashout: float | None = None
    remaining_pay: float | None = None
    extra_money: float | None = None
    reduction: float | None = None
    is_pending: bool | None = None


class EntryUpdateRequest(EntryCreateRequest):
    """Partial update; only fields explicitly sent are applied."""


class EntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    created_by: str
    kind: str
    method: str | None
    player_name: str
    player_tag: str
    game_name: str
    amount_base: float
    amount: float | None
    bonus_rate: float
    bonus_amount: float
    amount_final: float
    note: str
    date: str | None
    total_paid: float
    total_cashout: float
    remaining_pay: float | None
    is_pending: bool
    extra_money: float
    reduction: float
    created_at: datetime | None
    updated_at: datetime | None


class HistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    entry_id: int
    action: str
    kind: str | None
    game_name: str | None
    amount_final: float | None
    reduction: float | None
    remaining_pay: float | None
    is_pending: bool
    recorded_by: str | None
    snapshot: dict
    created_at: datetime | None


class PendingRow(BaseModel):
    """One resolved pending balance per (username, player_tag)."""

    entry_id: int
    kind: str
    username: str
    player_tag: str
    player_name: str
    game_name: str
    method: str
    total_paid: float
    total_cashout: float
    pending_amount: float
    reduction: float
    pending_redeem: float
    date: str | None
    created_at: datetime | None


class SummaryReport(BaseModel):
    total_freeplay: float
    total_played_game: float
    total_deposit: float
    total_redeem: float
    net_coin: float
    pending_entries: list[PendingRow]
    total_pending_count: int
    total_pending_amount: float
    total_reduction: float
    total_extra_money: float
    revenue_by_method: dict[str, float]
    total_revenue: float


class GameSummary(BaseModel):
    game_name: str
    total_freeplay: float
    total_played_game: float
    total_deposit: float
    total_redeem: float
    total_coins: float


class GameCreateRequest(BaseModel):
    name: str
    coins_recharged: float = 0
    last_recharge_date: str | None = None


class GameBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    coins_recharged: float
    last_recharge_date: str | None
    total_coins: float


class GameDriftResponse(BaseModel):
    name: str
    materialized_total: float
    recomputed_total: float
    drift: float
    entry_count: int
    has_drift: bool
