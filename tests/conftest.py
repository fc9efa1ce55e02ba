"""Pytest fixtures."""

from datetime import UTC, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from helprr.models import Base
from helprr.schemas.events import ServiceKind, Snapshot, UpcomingPolicy
from helprr.services.polling_state import PollingStateStore
from helprr.services.subscriptions import PreferenceResolver, SubscriptionStore

FETCHED_AT = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def engine():
    """In-memory database shared by every session in a test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def state_store(session_factory):
    return PollingStateStore(session_factory)


@pytest.fixture
def subscription_store(session_factory):
    return SubscriptionStore(session_factory)


@pytest.fixture
def resolver(session_factory):
    return PreferenceResolver(session_factory)


@pytest.fixture
def make_snapshot():
    """Build a snapshot for a service with the given record lists."""

    def _make(
        service=ServiceKind.SONARR,
        fetched_at=FETCHED_AT,
        lookahead_hours=24,
        upcoming=None,
        **records,
    ):
        return Snapshot(
            service=service,
            fetched_at=fetched_at,
            records=records,
            lookahead_hours=lookahead_hours,
            upcoming=upcoming or UpcomingPolicy(),
        )

    return _make
