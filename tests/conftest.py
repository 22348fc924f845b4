import os

# keep the application engine off PostgreSQL during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

import random

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pppk_exam import models  # noqa
from pppk_exam.db.base import Base
from pppk_exam.services.exam_service import ExamService
from tests.factories import SMALL_RULES, FakeClock, make_bank

TEST_DATABASE_URL = "sqlite://"


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a test database session."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def small_bank(db_session):
    make_bank(
        db_session,
        sizes={"TEKNIS": 6, "MANAJERIAL": 4},
        top_scores={"TEKNIS": 5, "MANAJERIAL": 4},
    )


@pytest.fixture
def service(db_session, clock):
    return ExamService(db_session, SMALL_RULES, rng=random.Random(42), clock=clock)
