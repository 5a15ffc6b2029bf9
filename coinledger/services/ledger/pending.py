"""Pending-balance resolution per (username, player_tag).

Resolution is a fold over deposit/redeem rows in creation order into a small
per-tag state holding the latest deposit and the latest redeem. A deposit,
when present, is the source of truth even if its reduction is zero; only
tags without any deposit fall back to their latest pending redeem.
"""

from dataclasses import dataclass
from functools import reduce

from sqlalchemy import select

from coinledger.common.coins import DEPOSIT, REDEEM
from coinledger.common.errors import NotFoundError, ValidationError
from coinledger.services.ledger.models import LedgerEntry


@dataclass
class TagState:
    last_deposit: LedgerEntry | None = None
    last_redeem: LedgerEntry | None = None


def _num(value) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def tag_key(entry) -> tuple[str, str]:
    return entry.username, entry.player_tag or ""


def fold_step(states: dict[tuple[str, str], TagState], entry) -> dict[tuple[str, str], TagState]:
    state = states.setdefault(tag_key(entry), TagState())
    if entry.kind == DEPOSIT:
        state.last_deposit = entry
    elif entry.kind == REDEEM:
        state.last_redeem = entry
    return states


def fold_tags(entries) -> dict[tuple[str, str], TagState]:
    """Reduce oldest-to-newest entries into one state per tag."""

    return reduce(fold_step, entries, {})


def resolve(state: TagState) -> dict | None:
    """Return the single pending row for one tag, or None if nothing is owed."""

    pending_reduction = 0.0
    pending_redeem = 0.0
    pending = 0.0
    source = None
    if state.last_deposit is not None:
        source = state.last_deposit
        pending_reduction = _num(source.reduction)
        pending = pending_reduction
    elif state.last_redeem is not None and state.last_redeem.is_pending:
        source = state.last_redeem
        if source.remaining_pay is not None:
            pending_redeem = _num(source.remaining_pay)
        else:
            cashout = source.total_cashout if source.total_cashout is not None else source.amount_final
            pending_redeem = _num(cashout) - _num(source.total_paid)
        pending = pending_redeem
    if source is None or pending <= 0:
        return None

    total_cashout = source.total_cashout if source.total_cashout is not None else source.amount_final
    return {
        "entry_id": source.id,
        "kind": source.kind,
        "username": source.username,
        "player_tag": source.player_tag or "",
        "player_name": source.player_name or "",
        "game_name": source.game_name,
        "method": source.method or "",
        "total_paid": _num(source.total_paid),
        "total_cashout": _num(total_cashout),
        "pending_amount": pending,
        "reduction": pending_reduction,
        "pending_redeem": pending_redeem,
        "date": source.date or (source.created_at.date().isoformat() if source.created_at else None),
        "created_at": source.created_at,
    }


def resolve_all(entries) -> list[dict]:
    rows = []
    for state in fold_tags(entries).values():
        row = resolve(state)
        if row is not None:
            rows.append(row)
    return rows


class PendingResolver:
    """Read-only view over deposit/redeem rows; never mutates state."""

    def candidates(self, db, username: str | None = None, conditions=()) -> list[LedgerEntry]:
        stmt = select(LedgerEntry).where(LedgerEntry.kind.in_((DEPOSIT, REDEEM)), *conditions)
        if username:
            stmt = stmt.where(LedgerEntry.username == username)
        return db.execute(stmt.order_by(LedgerEntry.id.asc())).scalars().all()

    def list_pending(self, db, username: str | None = None, conditions=()) -> list[dict]:
        return resolve_all(self.candidates(db, (username or "").strip() or None, conditions))

    def lookup_by_tag(self, db, username: str | None, player_tag: str | None) -> dict:
        """Pending row for exactly one tag; NotFoundError when nothing is owed."""

        clean_user = (username or "").strip()
        clean_tag = (player_tag or "").strip()
        if not clean_user:
            raise ValidationError("username is required", field="username")
        if not clean_tag:
            raise ValidationError("player_tag is required", field="player_tag")
        entries = self.candidates(db, clean_user, (LedgerEntry.player_tag == clean_tag,))
        row = resolve(fold_tags(entries).get((clean_user, clean_tag), TagState()))
        if row is None:
            raise NotFoundError(f"no pending balance for tag {clean_tag}", field="player_tag")
        return row
