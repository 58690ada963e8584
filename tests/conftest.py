"""Pytest configuration and shared fixtures.

Every test gets its own SQLite database file under ``tmp_path`` so that
several sessions (concurrency tests) and the API's thread pool all see the
same data.
"""

import pytest
from sqlalchemy.orm import sessionmaker

from subsidy.adapters import DatabaseIdentityProvider, YamlCatalog
from subsidy.core.process.service import ProcessService
from subsidy.db.session import create_db_engine, init_db

from tests.factories import create_staff
from tests.fakes import FakeRenderer, FixedClock, MemoryStorage


@pytest.fixture
def db_engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def catalog():
    return YamlCatalog.from_file()


@pytest.fixture
def identity(db_session):
    return DatabaseIdentityProvider(db_session)


@pytest.fixture
def users(db_session):
    """One committed user per role."""
    staff = create_staff(db_session)
    db_session.commit()
    return staff


@pytest.fixture
def service(db_session, identity, storage, renderer, catalog, clock):
    return ProcessService(db_session, identity, storage, renderer, catalog, clock=clock)


@pytest.fixture
def make_service(storage, renderer, catalog, clock):
    """Build a service bound to another session (concurrency tests)."""

    def factory(session, **overrides):
        return ProcessService(
            session,
            DatabaseIdentityProvider(session),
            overrides.get("storage", storage),
            overrides.get("renderer", renderer),
            catalog,
            clock=clock,
        )

    return factory
