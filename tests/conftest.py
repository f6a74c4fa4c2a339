import os

# keep the app module off the on-disk database during tests
os.environ.setdefault("MEMOQUIZ_DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app as app_module
import models  # noqa: F401  registers the tables on Base
from controller import DrillController
from database import Base, get_db


class ManualTicker:
    """Ticker stand-in that only fires when the test says so."""

    def __init__(self, callback, interval=1.0):
        self.callback = callback
        self.interval = interval
        self.started = False
        self.cancelled = False
        self.cancel_calls = 0

    @property
    def active(self):
        return self.started and not self.cancelled

    def start(self):
        self.started = True
        return self

    def cancel(self):
        self.cancel_calls += 1
        if self.cancelled:
            return False
        self.cancelled = True
        return True

    def fire(self):
        if self.active:
            self.callback()

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc):
        self.cancel()


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tickers():
    return []


@pytest.fixture
def controller(clock, tickers):
    def factory(callback, interval):
        ticker = ManualTicker(callback, interval)
        tickers.append(ticker)
        return ticker

    return DrillController(ticker_factory=factory, tick_seconds=1.0, clock=clock)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(db, controller):
    def override_db():
        yield db

    app_module.app.dependency_overrides[get_db] = override_db
    app_module.app.dependency_overrides[app_module.get_controller] = lambda: controller
    with TestClient(app_module.app) as c:
        yield c
    app_module.app.dependency_overrides.clear()
