"""Request-scoped sessions and the write-transaction boundary.

Sessions come from the factory bound to the app's own engine
(app.state.session_factory, set by create_app), so an app built around a
given database never touches the process-wide default engine.

Every write in ytmonitor goes through transaction(db, operation): it commits
on success and rolls back on any error. A storage-level OperationalError
(SQLite "database is locked", lost Postgres connection) surfaces as
StorageUnavailableError, which the agent treats as retryable.
"""

from collections.abc import Generator
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ytmonitor.db.engine import get_engine
from ytmonitor.errors import StorageUnavailableError
from ytmonitor.logging import get_logger

logger = get_logger(__name__)

_default_factory: sessionmaker[Session] | None = None


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Session factory for engine (the DATABASE_URL engine when None).

    expire_on_commit is off so service code can build responses from rows
    after the transaction committed.
    """
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory(request: Request | None = None) -> sessionmaker[Session]:
    """The app's factory when it has one, else the process default."""
    global _default_factory
    if request is not None:
        factory = getattr(request.app.state, "session_factory", None)
        if factory is not None:
            return factory
    if _default_factory is None:
        _default_factory = create_session_factory()
    return _default_factory


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    db = get_session_factory(request)()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session, operation: str) -> Generator[None, None, None]:
    """Commit the block's writes together, or none of them.

    Args:
        db: Session the writes are made on.
        operation: Name of the write, for the failure log entry.

    Raises:
        StorageUnavailableError: The database refused the write transiently.
    """
    try:
        yield
        db.commit()
    except OperationalError as e:
        db.rollback()
        logger.warning(
            "storage_write_failed",
            operation=operation,
            error=str(e.orig) if e.orig else str(e),
        )
        raise StorageUnavailableError() from e
    except Exception:
        db.rollback()
        raise
