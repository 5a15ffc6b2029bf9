"""Materialized per-game coin balances.

`apply_delta` is the only writer of `GameBalance.total_coins`. It runs inside
the caller's transaction as a single atomic `UPDATE ... SET total_coins =
total_coins + :delta`, so concurrent entry mutations for the same game cannot
lose each other's increments.
"""

from sqlalchemy import select, update

from coinledger.common.coins import coin_effect
from coinledger.common.errors import NotFoundError, ValidationError
from coinledger.common.logging import logger
from coinledger.common.metrics import game_balance_deltas_total
from coinledger.services.ledger.models import GameBalance, LedgerEntry


class GameBalanceMaintainer:
    """Owns `game_balances` rows; entry code only ever requests deltas."""

    def __init__(self, service_name: str = "ledger") -> None:
        self.service_name = service_name

    def apply_delta(self, db, game_name: str | None, delta: float) -> bool:
        """Add `delta` to one game's total; unknown games are a logged no-op."""

        name = (game_name or "").strip()
        if not name or not delta:
            return False
        result = db.execute(
            update(GameBalance)
            .where(GameBalance.name == name)
            .values(total_coins=GameBalance.total_coins + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("game_balance_skipped game=%s delta=%s reason=unregistered", name, delta)
            game_balance_deltas_total.labels(service=self.service_name, outcome="unregistered").inc()
            return False
        game_balance_deltas_total.labels(service=self.service_name, outcome="applied").inc()
        return True

    def register(self, db, name: str, coins_recharged: float = 0, last_recharge_date: str | None = None) -> GameBalance:
        """Create the balance row for a game; returns the existing row if present."""

        clean = (name or "").strip()
        if not clean:
            raise ValidationError("name is required", field="name")
        existing = db.get(GameBalance, clean)
        if existing is not None:
            return existing
        game = GameBalance(
            name=clean,
            coins_recharged=coins_recharged or 0,
            last_recharge_date=last_recharge_date,
            total_coins=0,
        )
        db.add(game)
        db.flush()
        return game

    def get(self, db, name: str) -> GameBalance:
        game = db.get(GameBalance, (name or "").strip())
        if game is None:
            raise NotFoundError(f"game {name} not found", field="name")
        return game

    def list(self, db) -> list[GameBalance]:
        return db.execute(select(GameBalance).order_by(GameBalance.name)).scalars().all()

    def recompute(self, db, name: str) -> tuple[float, int]:
        """Replay coin effects of all existing entries for one game."""

        rows = db.execute(
            select(LedgerEntry.kind, LedgerEntry.amount_final).where(LedgerEntry.game_name == name)
        ).all()
        return sum(coin_effect(row.kind, row.amount_final) for row in rows), len(rows)

    def drift(self, db, name: str) -> dict:
        """Compare the materialized total with a full replay of current entries."""

        game = self.get(db, name)
        recomputed, count = self.recompute(db, game.name)
        materialized = float(game.total_coins or 0)
        drift = materialized - recomputed
        return {
            "name": game.name,
            "materialized_total": materialized,
            "recomputed_total": recomputed,
            "drift": drift,
            "entry_count": count,
            "has_drift": abs(drift) > 1e-9,
        }

    def rebuild(self, db, name: str) -> GameBalance:
        """Bring the materialized total back in line with a replay of current entries.

        The correction goes through `apply_delta` like any other change.
        """

        report = self.drift(db, name)
        logger.warning(
            "game_balance_rebuild game=%s materialized=%s recomputed=%s entries=%s",
            report["name"],
            report["materialized_total"],
            report["recomputed_total"],
            report["entry_count"],
        )
        if report["has_drift"]:
            self.apply_delta(db, report["name"], -report["drift"])
        game = self.get(db, name)
        db.refresh(game)
        return game
