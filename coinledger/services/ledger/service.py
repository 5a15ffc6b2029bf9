"""Ledger entry store.

Owns creation, update, deletion and pending-clearing of ledger entries. Each
mutation and its game-balance delta commit in one transaction; the history
row is written afterwards on a best-effort basis.
"""

import math
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from coinledger.common.clock import normalize_date_string, utcnow
from coinledger.common.coins import (
    ALLOWED_KINDS,
    ALLOWED_METHODS,
    CASH_KINDS,
    DEPOSIT,
    REDEEM,
    coin_effect,
    normalize_kind,
)
from coinledger.common.errors import NotFoundError, PersistenceError, ValidationError
from coinledger.common.logging import entry_log_context, logger
from coinledger.common.metrics import ledger_mutations_total
from coinledger.services.ledger.balances import GameBalanceMaintainer
from coinledger.services.ledger.history import HistoryRecorder, entry_snapshot
from coinledger.services.ledger.models import LedgerEntry
from coinledger.services.ledger.pending import PendingResolver
from coinledger.services.ledger.summary import SummaryAggregator

_TEXT_FIELDS = ("player_name", "player_tag", "note")
_OPTIONAL_AMOUNTS = (
    "amount",
    "bonus_rate",
    "bonus_amount",
    "total_paid",
    "total_cashout",
    "remaining_pay",
    "extra_money",
    "reduction",
)


def _clean_text(value) -> str:
    return str(value).strip() if value is not None else ""


def _require_text(value, field: str) -> str:
    cleaned = _clean_text(value)
    if not cleaned:
        raise ValidationError(f"{field} is required", field=field)
    return cleaned


def _amount(value, field: str, required: bool = False) -> float:
    """Finite, non-negative number; missing optional amounts become 0."""

    if value is None:
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"invalid {field}", field=field) from None
    if not math.isfinite(number) or number < 0:
        raise ValidationError(f"invalid {field}: must be a finite number >= 0", field=field)
    return number


def _kind(value) -> str:
    kind = normalize_kind(value)
    if kind not in ALLOWED_KINDS:
        raise ValidationError(f"invalid kind: {value!r}", field="kind")
    return kind


def _method(value) -> str | None:
    if value is None or value == "":
        return None
    method = str(value).strip().lower()
    if method not in ALLOWED_METHODS:
        raise ValidationError(f"invalid method: {value!r}", field="method")
    return method


def _date(value) -> str | None:
    try:
        return normalize_date_string(value)
    except ValueError:
        raise ValidationError(f"invalid date: {value!r}", field="date") from None


def _check_method_invariant(kind: str, method: str | None) -> str | None:
    """`method` is required for deposit/redeem and dropped for every other kind."""

    if kind in CASH_KINDS:
        if not method:
            raise ValidationError("method is required for deposit and redeem", field="method")
        return method
    return None


class LedgerService:
    """Records transactions and keeps game balances in step with them."""

    def __init__(self, session_factory, clock=utcnow, service_name: str = "ledger") -> None:
        self.session_factory = session_factory
        self.clock = clock
        self.service_name = service_name
        self.balances = GameBalanceMaintainer(service_name)
        self.history = HistoryRecorder(session_factory, clock, service_name)
        self.pending = PendingResolver()
        self.summary = SummaryAggregator(self.pending, clock)

    @contextmanager
    def _unit_of_work(self, operation: str):
        """Session scope that turns store failures into `PersistenceError`."""

        with self.session_factory() as db:
            try:
                yield db
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("persistence_error operation=%s error=%s", operation, exc)
                raise PersistenceError(f"failed to {operation}") from exc

    def _load(self, db, entry_id: int, for_update: bool = False) -> LedgerEntry:
        stmt = select(LedgerEntry).where(LedgerEntry.id == entry_id)
        if for_update:
            stmt = stmt.with_for_update()
        entry = db.execute(stmt).scalar_one_or_none()
        if entry is None:
            raise NotFoundError(f"ledger entry {entry_id} not found", field="id")
        return entry

    def _after_mutation(self, snapshot: dict, action: str, actor: str | None) -> None:
        ledger_mutations_total.labels(service=self.service_name, action=action).inc()
        self.history.record(snapshot, action, recorded_by=actor)

    def _validate_create(self, req) -> dict:
        kind = _kind(req.kind)
        method = _check_method_invariant(kind, _method(req.method))
        amount_final = _amount(req.amount_final, "amount_final", required=True)
        data = {
            "username": _require_text(req.username, "username"),
            "created_by": _require_text(req.created_by, "created_by"),
            "kind": kind,
            "method": method,
            "game_name": _require_text(req.game_name, "game_name"),
            "amount_base": _amount(req.amount_base, "amount_base", required=True),
            "amount_final": amount_final,
            "date": _date(req.date),
            "is_pending": bool(req.is_pending),
        }
        for field in _TEXT_FIELDS:
            data[field] = _clean_text(getattr(req, field))
        for field in _OPTIONAL_AMOUNTS:
            data[field] = _amount(getattr(req, field), field)
        if req.amount is None:
            data["amount"] = amount_final
        return data

    def _merge_target(self, db, data: dict) -> LedgerEntry | None:
        """Latest deposit for the same (username, player_tag), locked for the merge."""

        return db.execute(
            select(LedgerEntry)
            .where(
                LedgerEntry.username == data["username"],
                LedgerEntry.player_tag == data["player_tag"],
                LedgerEntry.kind == DEPOSIT,
            )
            .order_by(LedgerEntry.id.desc())
            .limit(1)
            .with_for_update()
        ).scalar_one_or_none()

    def _merge_deposit(self, existing: LedgerEntry, data: dict, req) -> None:
        """Fold an additional player-tag deposit into the latest deposit row."""

        existing.amount_base = (existing.amount_base or 0) + data["amount_base"]
        existing.amount = (existing.amount or 0) + data["amount"]
        existing.amount_final = (existing.amount_final or 0) + data["amount_final"]
        # Cashout is the original amount owed; the first non-zero write wins.
        if not existing.total_cashout:
            existing.total_cashout = data["total_cashout"]
        existing.extra_money = (existing.extra_money or 0) + data["extra_money"]
        if req.player_name is not None:
            existing.player_name = data["player_name"]
        if req.note is not None:
            existing.note = data["note"]
        if req.date is not None:
            existing.date = data["date"]
        existing.reduction = max((existing.total_cashout or 0) - existing.amount_final, 0.0)
        existing.is_pending = existing.reduction > 0
        existing.updated_at = self.clock()

    def create_entry(self, req, actor: str | None = None) -> tuple[LedgerEntry, bool]:
        """Insert a new entry, or merge a player-tag deposit with reduction.

        Returns `(entry, merged)`.
        """

        data = self._validate_create(req)
        merge_candidate = data["kind"] == DEPOSIT and data["player_tag"] and data["reduction"] > 0

        with self._unit_of_work("create ledger entry") as db:
            existing = self._merge_target(db, data) if merge_candidate else None
            if existing is not None:
                old_effect = coin_effect(existing.kind, existing.amount_final)
                self._merge_deposit(existing, data, req)
                delta = coin_effect(existing.kind, existing.amount_final) - old_effect
                entry, action = existing, "update-merge"
            else:
                now = self.clock()
                entry = LedgerEntry(**data, created_at=now, updated_at=now)
                db.add(entry)
                db.flush()
                delta = coin_effect(entry.kind, entry.amount_final)
                action = "create"
            if delta:
                self.balances.apply_delta(db, entry.game_name, delta)
            db.commit()
            snapshot = entry_snapshot(entry)

        with entry_log_context(entry.id):
            logger.info(
                "entry_%s entry_id=%s kind=%s game=%s delta=%s",
                "merged" if action == "update-merge" else "created",
                entry.id,
                entry.kind,
                entry.game_name,
                delta,
            )
            self._after_mutation(snapshot, action, actor)
        return entry, action == "update-merge"

    def _validate_update(self, req) -> dict:
        sent = req.model_fields_set
        changes = {}
        for field in ("username", "created_by", "game_name"):
            if field in sent:
                changes[field] = _require_text(getattr(req, field), field)
        if "kind" in sent:
            changes["kind"] = _kind(req.kind)
        if "method" in sent:
            changes["method"] = _method(req.method)
        for field in ("amount_base", "amount_final"):
            if field in sent:
                changes[field] = _amount(getattr(req, field), field, required=True)
        for field in _OPTIONAL_AMOUNTS:
            if field in sent:
                changes[field] = _amount(getattr(req, field), field)
        for field in _TEXT_FIELDS:
            if field in sent:
                changes[field] = _clean_text(getattr(req, field))
        if "date" in sent:
            changes["date"] = _date(req.date)
        if "is_pending" in sent:
            changes["is_pending"] = bool(req.is_pending)
        return changes

    def update_entry(self, entry_id: int, req, actor: str | None = None) -> LedgerEntry:
        """Apply a partial update and move the coin effect between games as needed."""

        changes = self._validate_update(req)
        with self._unit_of_work("update ledger entry") as db:
            entry = self._load(db, entry_id, for_update=True)
            old_kind, old_final, old_game = entry.kind, entry.amount_final, entry.game_name

            for field, value in changes.items():
                setattr(entry, field, value)
            entry.method = _check_method_invariant(entry.kind, entry.method)
            entry.updated_at = self.clock()
            db.flush()

            old_effect = coin_effect(old_kind, old_final)
            new_effect = coin_effect(entry.kind, entry.amount_final)
            if old_effect:
                self.balances.apply_delta(db, old_game, -old_effect)
            if new_effect:
                self.balances.apply_delta(db, entry.game_name, new_effect)
            db.commit()
            snapshot = entry_snapshot(entry)

        with entry_log_context(entry.id):
            logger.info(
                "entry_updated entry_id=%s fields=%s old_effect=%s new_effect=%s",
                entry.id,
                sorted(changes),
                old_effect,
                new_effect,
            )
            self._after_mutation(snapshot, "update", actor)
        return entry

    def delete_entry(self, entry_id: int, actor: str | None = None) -> None:
        """Reverse the entry's coin effect, then remove it."""

        with self._unit_of_work("delete ledger entry") as db:
            entry = self._load(db, entry_id, for_update=True)
            snapshot = entry_snapshot(entry)
            effect = coin_effect(entry.kind, entry.amount_final)
            if effect:
                self.balances.apply_delta(db, entry.game_name, -effect)
            db.delete(entry)
            db.commit()

        with entry_log_context(entry_id):
            logger.info("entry_deleted entry_id=%s game=%s reversed=%s", entry_id, snapshot["game_name"], -effect)
            self._after_mutation(snapshot, "delete", actor)

    def clear_pending(self, entry_id: int, actor: str | None = None) -> LedgerEntry:
        """Zero the pending fields of one entry; `amount_final` is untouched."""

        with self._unit_of_work("clear pending") as db:
            entry = self._load(db, entry_id, for_update=True)
            if entry.kind == REDEEM:
                entry.remaining_pay = 0
            elif entry.kind == DEPOSIT:
                entry.reduction = 0
            else:
                entry.remaining_pay = 0
                entry.reduction = 0
            entry.is_pending = False
            entry.updated_at = self.clock()
            db.commit()
            snapshot = entry_snapshot(entry)

        with entry_log_context(entry.id):
            logger.info("entry_pending_cleared entry_id=%s kind=%s", entry.id, entry.kind)
            self._after_mutation(snapshot, "clear-pending", actor)
        return entry

    def get_entry(self, entry_id: int) -> LedgerEntry:
        with self._unit_of_work("load ledger entry") as db:
            return self._load(db, entry_id)

    def list_entries(
        self,
        username: str | None = None,
        kind: str | None = None,
        method: str | None = None,
        game_name: str | None = None,
        player_tag: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> list[LedgerEntry]:
        """Entries matching the given filters, newest first.

        Unknown kind/method values are ignored rather than rejected.
        """

        stmt = select(LedgerEntry)
        if _clean_text(username):
            stmt = stmt.where(LedgerEntry.username == _clean_text(username))
        if normalize_kind(kind) in ALLOWED_KINDS:
            stmt = stmt.where(LedgerEntry.kind == normalize_kind(kind))
        if method in ALLOWED_METHODS:
            stmt = stmt.where(LedgerEntry.method == method)
        if _clean_text(game_name):
            stmt = stmt.where(LedgerEntry.game_name == _clean_text(game_name))
        if _clean_text(player_tag):
            stmt = stmt.where(LedgerEntry.player_tag == _clean_text(player_tag))
        if date_from:
            stmt = stmt.where(LedgerEntry.date >= _date(date_from))
        if date_to:
            stmt = stmt.where(LedgerEntry.date <= _date(date_to))
        with self._unit_of_work("list ledger entries") as db:
            return db.execute(stmt.order_by(LedgerEntry.id.desc())).scalars().all()

    def list_history(self, entry_id: int, limit: int = 500):
        with self._unit_of_work("load entry history") as db:
            return self.history.list_for_entry(db, entry_id, limit=limit)

    def list_pending(self, username: str | None = None) -> list[dict]:
        with self._unit_of_work("load pending balances") as db:
            return self.pending.list_pending(db, username=username)

    def lookup_pending_by_tag(self, username: str | None, player_tag: str | None) -> dict:
        with self._unit_of_work("load pending balance") as db:
            return self.pending.lookup_by_tag(db, username, player_tag)

    def summarize(self, username=None, period=None, year=None, month=None, day=None) -> dict:
        with self._unit_of_work("build summary") as db:
            return self.summary.summarize(db, username, period, year, month, day)

    def summarize_by_game(self, username=None, year=None, month=None) -> list[dict]:
        with self._unit_of_work("build per-game summary") as db:
            return self.summary.summarize_by_game(db, username, year, month)

    def register_game(self, name: str, coins_recharged: float = 0, last_recharge_date: str | None = None):
        recharge_date = _date(last_recharge_date)
        coins = _amount(coins_recharged, "coins_recharged")
        with self._unit_of_work("register game") as db:
            game = self.balances.register(db, name, coins, recharge_date)
            db.commit()
            return game

    def get_game(self, name: str):
        with self._unit_of_work("load game") as db:
            return self.balances.get(db, name)

    def list_games(self):
        with self._unit_of_work("list games") as db:
            return self.balances.list(db)

    def game_drift(self, name: str) -> dict:
        with self._unit_of_work("check game drift") as db:
            return self.balances.drift(db, name)

    def rebuild_game_balance(self, name: str):
        with self._unit_of_work("rebuild game balance") as db:
            game = self.balances.rebuild(db, name)
            db.commit()
            return game
