"""Shared fixtures for geocodable tests."""

import math

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from geocodable.database import Base
from geocodable.settings_helper import GeocodingConfig
from tests.factories import FakeGeocodingClient

import geocodable.models  # noqa: F401  (registers tables on Base.metadata)


def _null_safe(fn):
    def wrapper(*args):
        if any(a is None for a in args):
            return None
        return fn(*args)
    return wrapper


def _register_math_functions(dbapi_conn, connection_record):
    """SQLite lacks the trig/least/greatest functions Postgres has built in"""
    dbapi_conn.create_function("sin", 1, _null_safe(math.sin))
    dbapi_conn.create_function("cos", 1, _null_safe(math.cos))
    dbapi_conn.create_function("acos", 1, _null_safe(math.acos))
    dbapi_conn.create_function("least", 2, _null_safe(min))
    dbapi_conn.create_function("greatest", 2, _null_safe(max))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _register_math_functions)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_client():
    return FakeGeocodingClient()


@pytest.fixture
def config():
    return GeocodingConfig()
