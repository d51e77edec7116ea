"""Engine, session factory and store error translation."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from plura.core.config import settings
from plura.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """Create an engine with connect/pool timeouts for the configured backend."""
    url = make_url(database_url)
    backend = url.get_backend_name()
    connect_args: dict = {}
    engine_kwargs: dict = {"pool_pre_ping": True}

    if backend.startswith("postgresql"):
        connect_args["options"] = "-c timezone=utc"
        connect_args["connect_timeout"] = settings.DB_CONNECT_TIMEOUT_SECONDS
        engine_kwargs["pool_timeout"] = settings.DB_POOL_TIMEOUT_SECONDS
    elif backend == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database in (None, "", ":memory:"):
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)
    if backend == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def store_call(db: Session, timeout: float | None = None) -> Iterator[Session]:
    """
    Run a unit of store work with a statement timeout.

    Connection failures, statement timeouts and pool exhaustion are rolled back
    and surfaced as StoreUnavailableError. Integrity errors propagate unchanged.
    """
    seconds = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        if db.get_bind().dialect.name == "postgresql":
            db.execute(text(f"SET LOCAL statement_timeout = {int(seconds * 1000)}"))
        yield db
    except (OperationalError, PoolTimeoutError) as exc:
        db.rollback()
        logger.warning("Entity store unavailable: %s", exc.__class__.__name__)
        raise StoreUnavailableError("Entity store unavailable, retry later") from exc
    except DBAPIError as exc:
        if not exc.connection_invalidated:
            raise
        db.rollback()
        logger.warning("Entity store connection lost")
        raise StoreUnavailableError("Entity store unavailable, retry later") from exc
