"""Shared fixtures: a throwaway SQLite file per test and an app wired to it."""
import os

# server_missions.db builds its module engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from server_missions.db import Base, get_db, make_engine
from server_missions.main import build_app
from server_missions.services import lifecycle
from server_missions.services.ledger import InMemoryRewardLedger, get_ledger
from server_missions.services.store import utcnow


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'missions.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def ledger():
    return InMemoryRewardLedger()


@pytest.fixture
def make_mission(db):
    """Create an active iron_ore mission (bronze 0.25 / gold 1.0) unless told otherwise."""

    def _make(**overrides):
        now = overrides.pop("now", None) or utcnow()
        kwargs = dict(
            name="Iron Drive",
            requirements={"iron_ore": 100},
            tiers_config=[
                {"name": "bronze", "multiplier": 0.25},
                {"name": "gold", "multiplier": 1.0},
            ],
            rewards_by_tier={
                "bronze": {"gold": 100, "items": [{"item_key": "bronze_badge", "quantity": 1}]},
                "gold": {"gold": 500, "items": [{"item_key": "gold_badge", "quantity": 1}]},
            },
            ends_at=now + timedelta(hours=1),
            start_immediately=True,
            now=now,
        )
        kwargs.update(overrides)
        mission = lifecycle.create_mission(db, **kwargs)
        # release the write lock so other sessions can use the database
        db.commit()
        return mission

    return _make


@pytest.fixture
def client(session_factory, ledger):
    app = build_app(ledger=ledger)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_ledger] = lambda: ledger
    with TestClient(app) as c:
        yield c
