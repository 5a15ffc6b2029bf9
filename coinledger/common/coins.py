"""Transaction kinds, payment methods and the coin-effect rule."""

import math

FREEPLAY = "freeplay"
DEPOSIT = "deposit"
REDEEM = "redeem"
PLAYED_GAME = "playedgame"

ALLOWED_KINDS: tuple[str, ...] = (FREEPLAY, DEPOSIT, REDEEM, PLAYED_GAME)
ALLOWED_METHODS: tuple[str, ...] = ("cashapp", "paypal", "chime", "venmo")

# Kinds that move real cash and therefore carry a payment method.
CASH_KINDS: frozenset[str] = frozenset({DEPOSIT, REDEEM})

# Kinds that take coins out of a game's balance.
DEBIT_KINDS: frozenset[str] = frozenset({DEPOSIT, FREEPLAY, PLAYED_GAME})


def normalize_kind(value: str | None) -> str | None:
    """Map accepted spellings (`played-game`, `played_game`) onto stored kinds."""

    if value is None:
        return None
    return value.strip().lower().replace("-", "").replace("_", "")


def coin_effect(kind: str | None, amount_final) -> float:
    """Signed contribution of one entry to its game's `total_coins`."""

    try:
        amount = float(amount_final)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(amount) or amount <= 0:
        return 0.0
    if kind in DEBIT_KINDS:
        return -amount
    if kind == REDEEM:
        return amount
    return 0.0
