import json
import logging
import os
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Tests never touch a real database or start the background scheduler.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "0")
os.environ.setdefault("DB_AUTO_CREATE", "0")

from migrainelog.main import app
from migrainelog.db import Base, get_db
from migrainelog.init_db import init_db
import migrainelog.db as db_module
from migrainelog.config.app_config import reset_app_config_cache
from migrainelog.services.episode_service import EpisodeService
from migrainelog.services.scheduler import get_check_in_scheduler
from migrainelog.tests.fakes import FakeClock, FakeScheduler


# In-memory SQLite shared across connections
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Code paths that open their own sessions (scheduled check-in job) use the test engine
db_module.engine = engine
db_module.SessionLocal = TestingSessionLocal


@pytest.fixture(autouse=True)
def schema():
    init_db(engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def fresh_config():
    reset_app_config_cache()
    yield
    reset_app_config_cache()


class _ListHandler(logging.Handler):
    def __init__(self, sink):
        super().__init__()
        self.sink = sink

    def emit(self, record):
        self.sink.append(json.loads(record.getMessage()))


@pytest.fixture
def captured_events():
    """Parsed JSON events from every component logger, in emission order."""
    events: list[dict] = []
    handler = _ListHandler(events)
    loggers = [logging.getLogger(f"migrainelog.{c}") for c in ("episodes", "scheduler", "notifications")]
    for lg in loggers:
        lg.addHandler(handler)
    try:
        yield events
    finally:
        for lg in loggers:
            lg.removeHandler(handler)


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def db():
    s = TestingSessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def service(db, clock, fake_scheduler):
    return EpisodeService(
        db,
        scheduler=fake_scheduler,
        clock=clock,
        check_in_delay=timedelta(hours=1),
    )


def _override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(fake_scheduler):
    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_check_in_scheduler] = lambda: fake_scheduler
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
