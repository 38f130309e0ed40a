"""Pytest configuration and fixtures for ytmonitor tests.

Test isolation strategy:
- Every test gets its own temporary SQLite database file with the schema created
- The app is built around that database's engine, so its sessions use it
- Settings come from a controlled environment and the cache is reset per test
- Each app instance has its own in-memory rate limiter
"""

import sys
from collections.abc import Generator
from pathlib import Path

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from ytmonitor.app import add_request_id_middleware, create_app
from ytmonitor.config import clear_settings_cache
from ytmonitor.db.engine import create_db_engine
from ytmonitor.db.models import Base
from ytmonitor.db.session import create_session_factory


@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path) -> Generator[None, None, None]:
    """Pin the environment so no test depends on the developer's shell or .env."""
    monkeypatch.setenv("YTM_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'unused.db'}")
    monkeypatch.delenv("YTM_MANAGEMENT_SECRET", raising=False)
    monkeypatch.delenv("REDIS_URL", raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def engine(tmp_path) -> Generator[Engine, None, None]:
    """Create a fresh SQLite database with the full schema."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ytmonitor-test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Provide a database session on the test database.

    Reads through this session see rows committed by API requests made in
    the same test (call db_session.expire_all() before re-reading a row).
    """
    session = session_factory()
    yield session
    session.close()


def build_app(engine: Engine) -> FastAPI:
    """Create the app on the test database, with request-id middleware."""
    app = create_app(engine=engine)
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def app(engine) -> FastAPI:
    return build_app(engine)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client bound to the test database."""
    with TestClient(app) as client:
        yield client
