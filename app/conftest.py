import dataclasses

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api_endpoints import app
from database import get_db
from settings import get_settings, settings
import models_sqlalchemy as models

# ---------- TEST FIXTURES ----------

# Use in-memory SQLite for test isolation
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    models.Base.metadata.create_all(bind=engine)
    yield engine
    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    """A new DB session for each test."""
    Session = sessionmaker(bind=engine, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture(scope="function")
def app_settings():
    """Mutable holder for the Settings the app sees; tests call ``app_settings.update(...)``."""

    class Holder:
        current = dataclasses.replace(settings, jwt_secret="test-secret")

        def update(self, **changes):
            self.current = dataclasses.replace(self.current, **changes)

    return Holder()


@pytest.fixture(scope="function")
def client(db_session, app_settings):
    """Override get_db and get_settings dependencies for FastAPI TestClient."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: app_settings.current
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def other_client(client):
    """Second browser session sharing the same database."""
    return TestClient(app)
