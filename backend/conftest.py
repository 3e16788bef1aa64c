"""
Pytest configuration file for backend testing.
"""
import os
import sys
from datetime import datetime
from pathlib import Path

# Add the backend directory to Python path so imports work correctly
backend_dir = Path(__file__).parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Settings are read at import time; point the app at throwaway stores first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("REDIS_URL", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from core.auth import create_access_token  # noqa: E402
from core.database import Base, build_engine, get_db  # noqa: E402
from core.time_utils import get_current_time  # noqa: E402
from app.main import app  # noqa: E402

# Monday 2 June 2025, 09:00 shop time
FIXED_NOW = datetime(2025, 6, 2, 9, 0)


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so several sessions and threads can share it."""
    test_engine = build_engine(f"sqlite:///{tmp_path / 'dispatch_test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Create a fresh database session for each test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def client(db_session, now):
    """Create a test client with database and clock overrides."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_time] = lambda: now
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def staff_headers():
    token = create_access_token(staff_id=7, username="barista", roles=["staff"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def manager_headers():
    token = create_access_token(staff_id=1, username="manager", roles=["manager"])
    return {"Authorization": f"Bearer {token}"}
