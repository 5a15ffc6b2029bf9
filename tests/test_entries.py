"""Entry store: validation, coin effects on game balances, merge rule."""

import random

import pytest
from sqlalchemy.exc import OperationalError

from coinledger.common.coins import coin_effect
from coinledger.common.errors import NotFoundError, PersistenceError, ValidationError
from coinledger.services.ledger.schemas import EntryUpdateRequest


def _total(service, name):
    return service.get_game(name).total_coins


def test_deposit_then_redeem_moves_game_balance(service, make_entry):
    """Deposit of 100 then redeem of 40 leaves the game at -60."""

    service.register_game("X")
    service.create_entry(make_entry(kind="deposit", amount_base=100, amount_final=100))
    service.create_entry(make_entry(kind="redeem", amount_base=40, amount_final=40))
    assert _total(service, "X") == -60


def test_unregistered_game_still_records_entry(service, make_entry):
    """Entries for unknown games are stored; no balance row appears."""

    entry, merged = service.create_entry(make_entry(game_name="Ghost"))
    assert not merged
    assert service.get_entry(entry.id).game_name == "Ghost"
    with pytest.raises(NotFoundError):
        service.get_game("Ghost")


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"username": "  "}, "username"),
        ({"game_name": None}, "game_name"),
        ({"kind": "bonus"}, "kind"),
        ({"method": None}, "method"),
        ({"method": "wire"}, "method"),
        ({"amount_final": -1}, "amount_final"),
        ({"amount_final": float("nan")}, "amount_final"),
        ({"amount_base": float("inf")}, "amount_base"),
        ({"reduction": -3}, "reduction"),
        ({"date": "yesterday"}, "date"),
    ],
)
def test_invalid_requests_are_rejected(service, make_entry, overrides, field):
    """Bad input names the field and leaves no trace in entries or balances."""

    service.register_game("X")
    with pytest.raises(ValidationError) as excinfo:
        service.create_entry(make_entry(**overrides))
    assert excinfo.value.field == field
    assert service.list_entries() == []
    assert _total(service, "X") == 0


def test_method_dropped_for_non_cash_kinds(service, make_entry):
    """Non-cash kinds never carry a payment method."""

    entry, _ = service.create_entry(make_entry(kind="played-game", method="paypal"))
    assert entry.kind == "playedgame"
    assert entry.method is None


def test_optional_fields_take_defaults(service, make_entry):
    """Missing optional amounts default to zero; amount falls back to amount_final."""

    entry, _ = service.create_entry(make_entry(amount_final=12, date="2026-10-19T08:00:00Z"))
    assert entry.amount == 12
    assert entry.reduction == 0
    assert entry.extra_money == 0
    assert entry.player_tag == ""
    assert entry.date == "2026-10-19"


def test_update_moves_effect_between_games(service, make_entry):
    """Old effect is reversed on the old game and the new one applied to the new game."""

    service.register_game("A")
    service.register_game("B")
    entry, _ = service.create_entry(make_entry(kind="freeplay", game_name="A", amount_final=30))
    assert _total(service, "A") == -30

    service.update_entry(entry.id, EntryUpdateRequest(game_name="B", kind="redeem", method="chime", amount_final=45))
    assert _total(service, "A") == 0
    assert _total(service, "B") == 45


def test_update_to_non_cash_kind_drops_method(service, make_entry):
    """Switching to a non-cash kind clears the method."""

    entry, _ = service.create_entry(make_entry(kind="deposit", method="venmo"))
    updated = service.update_entry(entry.id, EntryUpdateRequest(kind="freeplay"))
    assert updated.method is None


def test_update_to_cash_kind_requires_method(service, make_entry):
    """Switching to a cash kind without a method is rejected and rolled back."""

    service.register_game("X")
    entry, _ = service.create_entry(make_entry(kind="freeplay", amount_final=5))
    with pytest.raises(ValidationError):
        service.update_entry(entry.id, EntryUpdateRequest(kind="redeem"))
    assert service.get_entry(entry.id).kind == "freeplay"
    assert _total(service, "X") == -5


def test_update_leaves_unsent_fields_alone(service, make_entry):
    """Partial updates only touch the fields sent."""

    entry, _ = service.create_entry(make_entry(note="first", player_name="Bob"))
    updated = service.update_entry(entry.id, EntryUpdateRequest(note="second"))
    assert updated.note == "second"
    assert updated.player_name == "Bob"
    assert updated.amount_final == entry.amount_final


def test_delete_reverses_effect(service, make_entry):
    """Deleting an entry gives its coins back to the game."""

    service.register_game("X")
    entry, _ = service.create_entry(make_entry(kind="deposit", amount_final=70))
    service.delete_entry(entry.id)
    assert _total(service, "X") == 0
    with pytest.raises(NotFoundError):
        service.get_entry(entry.id)


def test_missing_entry_operations_raise_not_found(service):
    """Mutations on an unknown id raise NotFoundError."""

    with pytest.raises(NotFoundError):
        service.update_entry(999, EntryUpdateRequest(note="x"))
    with pytest.raises(NotFoundError):
        service.delete_entry(999)
    with pytest.raises(NotFoundError):
        service.clear_pending(999)


def test_player_tag_deposits_with_reduction_merge(service, make_entry):
    """Second tagged deposit with reduction folds into the first row."""

    service.register_game("X")
    first, merged = service.create_entry(
        make_entry(player_tag="T1", amount_base=30, amount_final=30, total_cashout=100, reduction=70)
    )
    assert not merged

    second, merged = service.create_entry(
        make_entry(player_tag="T1", amount_base=20, amount_final=20, total_cashout=100, reduction=50)
    )
    assert merged
    assert second.id == first.id
    assert second.amount_final == 50
    assert second.amount_base == 50
    assert second.total_cashout == 100
    assert second.reduction == 50
    assert second.is_pending is True
    assert len(service.list_entries(kind="deposit")) == 1
    assert _total(service, "X") == -50


def test_merge_sets_cashout_only_when_unset(service, make_entry):
    """Cashout is written once; later merges recompute reduction against it."""

    service.create_entry(make_entry(player_tag="T2", amount_final=10, reduction=5))
    merged_entry, merged = service.create_entry(
        make_entry(player_tag="T2", amount_final=15, total_cashout=40, reduction=25)
    )
    assert merged
    assert merged_entry.total_cashout == 40
    assert merged_entry.reduction == 15

    again, _ = service.create_entry(make_entry(player_tag="T2", amount_final=25, total_cashout=90, reduction=1))
    assert again.total_cashout == 40
    assert again.amount_final == 50
    assert again.reduction == 0
    assert again.is_pending is False


def test_merge_only_overwrites_supplied_text(service, make_entry):
    """Merged text fields change only when the new deposit supplies them."""

    service.create_entry(make_entry(player_tag="T3", player_name="Bob", note="keep", reduction=5, total_cashout=50))
    entry, merged = service.create_entry(make_entry(player_tag="T3", player_name="Robert", reduction=5))
    assert merged
    assert entry.player_name == "Robert"
    assert entry.note == "keep"


def test_deposit_without_reduction_is_not_merged(service, make_entry):
    """A deposit with zero reduction always inserts a new row."""

    service.create_entry(make_entry(player_tag="T4", reduction=5, total_cashout=20))
    _, merged = service.create_entry(make_entry(player_tag="T4", reduction=0))
    assert not merged
    assert len(service.list_entries(player_tag="T4")) == 2


def test_list_entries_newest_first_with_filters(service, make_entry):
    """Listing is newest first and honors filters."""

    a, _ = service.create_entry(make_entry(username="alice"))
    b, _ = service.create_entry(make_entry(username="bob", kind="freeplay"))
    c, _ = service.create_entry(make_entry(username="alice", kind="redeem"))
    assert [e.id for e in service.list_entries()] == [c.id, b.id, a.id]
    assert [e.id for e in service.list_entries(username="alice")] == [c.id, a.id]
    assert [e.id for e in service.list_entries(kind="freeplay")] == [b.id]


def test_game_balance_matches_replay_after_random_mutations(service, make_entry):
    """After any create/update/delete sequence the balance equals the sum of effects."""

    rng = random.Random(7)
    service.register_game("G")
    live = []
    for _ in range(60):
        action = rng.choice(("create", "create", "update", "delete"))
        if action == "create" or not live:
            kind = rng.choice(("deposit", "redeem", "freeplay", "playedgame"))
            entry, _ = service.create_entry(
                make_entry(game_name="G", kind=kind, method="paypal", amount_final=rng.randint(0, 200))
            )
            live.append(entry.id)
        elif action == "update":
            entry_id = rng.choice(live)
            kind = rng.choice(("deposit", "redeem", "freeplay", "playedgame"))
            service.update_entry(
                entry_id,
                EntryUpdateRequest(kind=kind, method="paypal", amount_final=rng.randint(0, 200)),
            )
        else:
            entry_id = live.pop(rng.randrange(len(live)))
            service.delete_entry(entry_id)

    expected = sum(coin_effect(e.kind, e.amount_final) for e in service.list_entries(game_name="G"))
    assert _total(service, "G") == pytest.approx(expected)
    assert service.game_drift("G")["has_drift"] is False


def test_store_failure_rolls_back_the_entry(service, make_entry, monkeypatch):
    """A database error mid-write surfaces as PersistenceError and leaves nothing behind."""

    service.register_game("X")

    def failing_delta(db, game_name, delta):
        raise OperationalError("UPDATE game_balances", {}, Exception("database is locked"))

    monkeypatch.setattr(service.balances, "apply_delta", failing_delta)
    with pytest.raises(PersistenceError):
        service.create_entry(make_entry(amount_final=40))

    assert service.list_entries() == []
    assert _total(service, "X") == 0
