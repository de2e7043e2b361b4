"""Database engine construction and session management.

Nothing here opens a connection at import time. The application factory
calls ``build_engine`` and ``build_session_factory`` with an explicit
``Settings`` object and owns the resulting objects for the process lifetime.
"""

from typing import Optional

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .core.config import Settings

# Create base class for models
Base = declarative_base()


def is_postgresql(engine: Engine) -> bool:
    """Check if the engine talks to PostgreSQL."""
    return engine.dialect.name == "postgresql"


def build_engine(settings: Settings, url: Optional[str] = None) -> Engine:
    """Create an engine with database-specific tuning.

    SQLite: every transaction opens with ``BEGIN IMMEDIATE`` so writers are
    serialized by the database lock, and waiting on that lock is bounded by
    ``db_lock_timeout_seconds``. In-memory URLs share one connection.

    PostgreSQL: pooled connections; batch isolation comes from advisory
    locks taken by the NodeStore.
    """
    database_url = url or settings.database_url

    if database_url.startswith("sqlite"):
        kwargs = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.db_lock_timeout_seconds,
            },
        }
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            # Let SQLAlchemy's "begin" event emit BEGIN instead of pysqlite.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_engine(
        database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        # Detects stale connections before use.
        pool_pre_ping=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_schema(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    # Import models so they register on Base.metadata.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db(request: Request):
    """Dependency for FastAPI routes to get a database session.

    The session factory lives on ``app.state`` (set by the application
    factory). Rolls back on unhandled exceptions so the connection returns
    to the pool in a clean state.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
