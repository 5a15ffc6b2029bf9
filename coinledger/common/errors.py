"""Error taxonomy raised by the ledger core and mapped by the HTTP layer."""


class LedgerError(Exception):
    """Base class for ledger failures surfaced to callers."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)


class ValidationError(LedgerError):
    """Missing/invalid field, unknown enum value, or a non-finite/negative number."""


class NotFoundError(LedgerError):
    """Requested entry (or game) does not exist."""


class PersistenceError(LedgerError):
    """Underlying store failure; callers only see a generic message."""
