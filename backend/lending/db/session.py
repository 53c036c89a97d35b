import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from lending.core import config
from lending.core.db import register_query_timing

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()

# Internal lazy globals
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None
_database_url: Optional[str] = None


def build_engine(database_url: str, lock_timeout_ms: Optional[int] = None) -> Engine:
    """Create an engine for ``database_url`` with bounded lock waits.

    SQLite gets a busy timeout derived from ``lock_timeout_ms`` so writers
    queue on the database lock instead of failing immediately. PostgreSQL
    receives its lock timeout per transaction in ``transaction()``.
    """
    timeout_ms = lock_timeout_ms or config.get_lock_timeout_ms()
    url = make_url(database_url)

    if url.drivername.startswith("postgres"):
        engine = create_engine(
            database_url,
            pool_size=20,
            max_overflow=40,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "application_name": "lending",  # Visible in pg_stat_activity
                "connect_timeout": 10,
            },
            echo=False,
        )
    elif url.drivername.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout_ms / 1000.0}
        if url.database in (None, "", ":memory:"):
            # Single shared in-memory database so DDL is visible to every session
            engine = create_engine(
                database_url,
                echo=False,
                connect_args=connect_args,
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(database_url, echo=False, connect_args=connect_args)
    else:
        engine = create_engine(database_url, echo=False)

    register_query_timing(engine)
    logger.debug(
        "SQLAlchemy engine created",
        extra={
            "context": {
                "dialect": engine.dialect.name,
                "database": url.database,
                "lock_timeout_ms": timeout_ms,
            }
        },
    )
    return engine


def get_engine() -> Engine:
    """Return a cached SQLAlchemy engine, creating it from DATABASE_URL on
    first call. This allows tests to set DATABASE_URL before the engine is
    constructed."""
    global _engine
    global _SessionLocal
    global _database_url
    database_url = config.get_database_url()
    if _engine is None or _database_url != database_url:
        if _engine is not None:
            _engine.dispose()
        _engine = build_engine(database_url)
        _SessionLocal = None
        _database_url = database_url
    return _engine


def get_sessionmaker() -> sessionmaker:
    """Return a cached sessionmaker bound to the lazy engine."""
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
        )
    return _SessionLocal


def SessionLocal() -> Session:
    """Return a new Session bound to the configured database."""
    return get_sessionmaker()()


def reset_engine() -> None:
    """Dispose the cached engine so the next call rebuilds it."""
    global _engine
    global _SessionLocal
    global _database_url
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
    _database_url = None


def create_tables(engine: Optional[Engine] = None) -> None:
    """Create all tables in database using the lazy engine."""
    # Ensure models are imported so Base.metadata is populated
    from lending.db import base  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


@contextmanager
def transaction(session_factory=None) -> Iterator[Session]:
    """Run one unit of work.

    Commits when the block exits normally, rolls back on any exception and
    always closes the session. On PostgreSQL the lock wait of every
    statement in the block is bounded by LOCK_TIMEOUT_MS.
    """
    factory = session_factory or get_sessionmaker()
    session = factory()
    try:
        if session.get_bind().dialect.name == "postgresql":
            session.execute(
                text(f"SET LOCAL lock_timeout = {int(config.get_lock_timeout_ms())}")
            )
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()
