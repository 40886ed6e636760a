import os

# Must be set before berlioz.config / berlioz.db are imported.
os.environ["ENV"] = "test"

import pytest

from berlioz.db import Base, SessionLocal, engine
import berlioz.models  # noqa: F401

pytest_plugins = [
    "tests.fixtures.slack_fixtures",
    "tests.fixtures.event_fixtures",
]


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test on the test database (in-memory SQLite by default)."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """TestClient bound to the test session."""
    from fastapi.testclient import TestClient

    from berlioz.db import get_db
    from berlioz.main import create_app

    app = create_app(testing=True)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
