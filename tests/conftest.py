"""Shared fixtures: settings env, a throwaway sqlite database, a controllable clock."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("API_KEY", "test-key")
os.environ.setdefault("TRACING_ENABLED", "false")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from coinledger.common.db import Base, make_engine
from coinledger.services.ledger import models  # noqa: F401
from coinledger.services.ledger.schemas import EntryCreateRequest
from coinledger.services.ledger.service import LedgerService


class TickingClock:
    """Returns the current instant and then moves one second forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current

    def set(self, value: datetime) -> None:
        self.now = value


@pytest.fixture
def clock():
    return TickingClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def service(session_factory, clock):
    return LedgerService(session_factory, clock=clock)


@pytest.fixture
def make_entry():
    """Build a create request with sensible defaults for a cash deposit on game X."""

    def _make(**overrides) -> EntryCreateRequest:
        payload = {
            "username": "alice",
            "created_by": "alice",
            "kind": "deposit",
            "method": "cashapp",
            "game_name": "X",
            "amount_base": 10,
            "amount_final": 10,
        }
        payload.update(overrides)
        return EntryCreateRequest(**payload)

    return _make
