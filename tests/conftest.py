import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tourdesk.config import Settings
from tourdesk.db import models
from tourdesk.db.session import Base
from tourdesk.services.notifications import StubDispatcher
from tourdesk.services.payments import StubGateway

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
    yield factory
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def settings():
    return Settings()


@pytest.fixture()
def dispatcher(settings):
    return StubDispatcher(settings)


@pytest.fixture()
def gateway(settings):
    return StubGateway(settings)


@pytest.fixture()
def make_request(db_session):
    def _make(submitted_at=T0, **overrides) -> models.BookingRequest:
        values = dict(
            customer_name="Aiko Tanaka",
            customer_email="aiko@example.com",
            tour_type="NIGHT_TOUR",
            tour_name="Kyoto Night Walk",
            booking_date=date(2026, 3, 10),
            booking_time="18:00",
            adults=2,
            total_amount=13000,
            payment_method_token="pm_card_visa_4242",
            submitted_at=submitted_at,
        )
        values.update(overrides)
        request = models.BookingRequest(**values)
        db_session.add(request)
        db_session.commit()
        return request

    return _make
