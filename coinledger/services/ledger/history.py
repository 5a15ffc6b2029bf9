"""Best-effort audit trail for ledger entry mutations."""

from datetime import datetime

from sqlalchemy import select

from coinledger.common.logging import logger
from coinledger.common.metrics import history_write_failures_total
from coinledger.services.ledger.models import LedgerEntry, LedgerHistoryRecord

HISTORY_ACTIONS = ("create", "update", "delete", "update-merge", "clear-pending")

# Financial fields copied verbatim onto each history row.
_COPIED_FIELDS = (
    "username",
    "created_by",
    "kind",
    "method",
    "player_name",
    "player_tag",
    "game_name",
    "amount_base",
    "amount",
    "bonus_rate",
    "bonus_amount",
    "amount_final",
    "total_paid",
    "total_cashout",
    "remaining_pay",
    "extra_money",
    "reduction",
    "is_pending",
    "date",
    "note",
)


def entry_snapshot(entry: LedgerEntry) -> dict:
    """JSON-safe copy of every column on an entry."""

    snapshot = {}
    for column in LedgerEntry.__table__.columns:
        value = getattr(entry, column.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        snapshot[column.key] = value
    return snapshot


class HistoryRecorder:
    """Appends one history row per mutation in its own session.

    Runs after the primary mutation committed; a failure here is logged and
    counted but never reaches the caller.
    """

    def __init__(self, session_factory, clock, service_name: str = "ledger") -> None:
        self.session_factory = session_factory
        self.clock = clock
        self.service_name = service_name

    def record(self, snapshot: dict, action: str, recorded_by: str | None = None) -> LedgerHistoryRecord | None:
        try:
            with self.session_factory() as db:
                row = LedgerHistoryRecord(
                    entry_id=snapshot["id"],
                    action=action,
                    snapshot=snapshot,
                    recorded_by=recorded_by,
                    created_at=self.clock(),
                    **{name: snapshot.get(name) for name in _COPIED_FIELDS},
                )
                row.is_pending = bool(snapshot.get("is_pending"))
                db.add(row)
                db.commit()
                return row
        except Exception as exc:
            logger.error(
                "history_write_failed entry_id=%s action=%s error=%s",
                snapshot.get("id"),
                action,
                exc,
            )
            history_write_failures_total.labels(service=self.service_name, action=action).inc()
            return None

    def list_for_entry(self, db, entry_id: int, limit: int = 500) -> list[LedgerHistoryRecord]:
        """History rows for one entry, newest first."""

        return (
            db.execute(
                select(LedgerHistoryRecord)
                .where(LedgerHistoryRecord.entry_id == entry_id)
                .order_by(LedgerHistoryRecord.created_at.desc(), LedgerHistoryRecord.seq.desc())
                .limit(limit)
            )
            .scalars()
            .all()
        )
