"""Shared test fixtures for the onboarding progress engine."""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["OFFLINE_BACKUP_ENABLED"] = "false"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from onboarding_engine.database import Base
import onboarding_engine.models  # noqa: F401
from onboarding_engine.services.record_store import SqlRecordStore

from factories import FakeCache, make_path, make_session


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return SqlRecordStore(db)


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def path(db):
    """Four-step path"""
    return make_path(db, steps=4)


@pytest.fixture
def session(db, path):
    return make_session(db, path)
