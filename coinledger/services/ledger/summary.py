"""Windowed financial summaries over ledger entries.

Totals are computed in SQL; the pending section reuses the pending resolver
restricted to the same scope. Per-game `total_coins` here is a point-in-time
recomputation and is independent of the materialized `GameBalance` counter.
"""

from sqlalchemy import case, func, select

from coinledger.common.clock import PERIODS, date_prefix, month_window, period_window
from coinledger.common.coins import ALLOWED_METHODS, DEPOSIT, FREEPLAY, PLAYED_GAME, REDEEM
from coinledger.common.errors import ValidationError
from coinledger.services.ledger.models import LedgerEntry
from coinledger.services.ledger.pending import PendingResolver

# Prefer amount_final, then amount, then 0.
COIN_AMOUNT = func.coalesce(LedgerEntry.amount_final, LedgerEntry.amount, 0)


def _kind_sum(kind: str):
    return func.coalesce(func.sum(case((LedgerEntry.kind == kind, COIN_AMOUNT), else_=0)), 0)


class SummaryAggregator:
    """Read-only reporting over a username/time scope."""

    def __init__(self, pending: PendingResolver, clock) -> None:
        self.pending = pending
        self.clock = clock

    def scope_conditions(self, username=None, period=None, year=None, month=None, day=None) -> list:
        """Build WHERE clauses for a summary scope.

        A named period filters on `created_at`; otherwise year/month[/day]
        filter on the `date` string.
        """

        conditions = []
        if username and str(username).strip():
            conditions.append(LedgerEntry.username == str(username).strip())
        if period:
            if period not in PERIODS:
                raise ValidationError("period must be one of day, week, month", field="period")
            start, end = period_window(period, self.clock())
            conditions.append(LedgerEntry.created_at >= start)
            conditions.append(LedgerEntry.created_at < end)
            return conditions
        prefix = date_prefix(year, month, day)
        if prefix is not None:
            if len(prefix) == 10:
                conditions.append(LedgerEntry.date == prefix)
            else:
                conditions.append(LedgerEntry.date.like(f"{prefix}%"))
        return conditions

    def summarize(self, db, username=None, period=None, year=None, month=None, day=None) -> dict:
        conditions = self.scope_conditions(username, period, year, month, day)

        by_kind = {
            row.kind: float(row.total or 0)
            for row in db.execute(
                select(LedgerEntry.kind, func.sum(COIN_AMOUNT).label("total"))
                .where(*conditions)
                .group_by(LedgerEntry.kind)
            ).all()
        }
        total_freeplay = by_kind.get(FREEPLAY, 0.0)
        total_played_game = by_kind.get(PLAYED_GAME, 0.0)
        total_deposit = by_kind.get(DEPOSIT, 0.0)
        total_redeem = by_kind.get(REDEEM, 0.0)

        pending_entries = self.pending.list_pending(db, conditions=conditions)

        extras = db.execute(
            select(
                func.coalesce(func.sum(func.coalesce(LedgerEntry.reduction, 0)), 0).label("reduction"),
                func.coalesce(func.sum(func.coalesce(LedgerEntry.extra_money, 0)), 0).label("extra_money"),
            ).where(*conditions)
        ).one()

        revenue_by_method = {method: 0.0 for method in ALLOWED_METHODS}
        for row in db.execute(
            select(LedgerEntry.method, func.sum(func.coalesce(LedgerEntry.amount_base, 0)).label("total"))
            .where(LedgerEntry.kind == DEPOSIT, *conditions)
            .group_by(LedgerEntry.method)
        ).all():
            if row.method in revenue_by_method:
                revenue_by_method[row.method] = float(row.total or 0)

        return {
            "total_freeplay": total_freeplay,
            "total_played_game": total_played_game,
            "total_deposit": total_deposit,
            "total_redeem": total_redeem,
            "net_coin": total_redeem - (total_freeplay + total_played_game + total_deposit),
            "pending_entries": pending_entries,
            "total_pending_count": len(pending_entries),
            "total_pending_amount": sum(row["pending_amount"] for row in pending_entries),
            "total_reduction": float(extras.reduction or 0),
            "total_extra_money": float(extras.extra_money or 0),
            "revenue_by_method": revenue_by_method,
            "total_revenue": sum(revenue_by_method.values()),
        }

    def summarize_by_game(self, db, username=None, year=None, month=None) -> list[dict]:
        """Per-game kind totals for one month (all time when the month is unusable)."""

        conditions = [LedgerEntry.game_name.is_not(None)]
        if username and str(username).strip():
            conditions.append(LedgerEntry.username == str(username).strip())
        window = month_window(year, month)
        if window is not None:
            conditions.append(LedgerEntry.created_at >= window[0])
            conditions.append(LedgerEntry.created_at < window[1])

        rows = db.execute(
            select(
                LedgerEntry.game_name,
                _kind_sum(FREEPLAY).label("total_freeplay"),
                _kind_sum(PLAYED_GAME).label("total_played_game"),
                _kind_sum(DEPOSIT).label("total_deposit"),
                _kind_sum(REDEEM).label("total_redeem"),
            )
            .where(*conditions)
            .group_by(LedgerEntry.game_name)
            .order_by(LedgerEntry.game_name)
        ).all()
        result = []
        for row in rows:
            freeplay = float(row.total_freeplay or 0)
            played = float(row.total_played_game or 0)
            deposit = float(row.total_deposit or 0)
            redeem = float(row.total_redeem or 0)
            result.append(
                {
                    "game_name": row.game_name,
                    "total_freeplay": freeplay,
                    "total_played_game": played,
                    "total_deposit": deposit,
                    "total_redeem": redeem,
                    "total_coins": redeem - (freeplay + played + deposit),
                }
            )
        return result
