from __future__ import annotations

import os

# Must be set before seatbook.db.session builds its module-level engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import seatbook.models  # noqa: F401
from factories import NOW, make_table, make_venue
from seatbook.core.clock import FixedClock
from seatbook.db.base import Base
from seatbook.db.session import make_engine
from seatbook.services.hours_service import invalidate_hours_cache
from seatbook.stores.sql_store import SqlAlchemyBookingStore


@pytest.fixture(autouse=True)
def _clear_hours_cache():
    invalidate_hours_cache()
    yield
    invalidate_hours_cache()


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return SqlAlchemyBookingStore(db)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def venue(db):
    return make_venue(db)


@pytest.fixture
def seat_table(db, venue):
    return make_table(db, venue, name="Bar", seat_prices=[1000, 2000, 1500, 1500])


@pytest.fixture
def group_table(db, venue):
    return make_table(
        db, venue, name="Booth", booking_mode="group", table_price_per_hour_cents=5000, seat_count=6
    )
