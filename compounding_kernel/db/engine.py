"""
Module: compounding_kernel.db.engine
Responsibility: Engine construction, the process-wide session factory, and
    the unit-of-work scope callers wrap kernel operations in.
Architecture position: Kernel > DB.  May import from db/base.py and the
    models package (for table creation).  MUST NOT import from services/,
    selectors/, or domain/.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; same-order serialization comes
      from the order-state compare-and-swap, not from isolation level.
    - SQLite (development, tests) lets SQLAlchemy emit BEGIN so savepoints
      nest inside the caller's transaction.  In-memory SQLite shares one
      connection (StaticPool) so every session sees the same database.
    - Kernel services flush; only ``session_scope`` (or the caller)
      commits.

Failure modes:
    - RuntimeError from get_engine/get_session/get_session_factory before
      init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from compounding_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


class _Registry:
    """The process-wide engine and its session factory."""

    engine: Engine | None = None
    factory: sessionmaker[Session] | None = None


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let SQLAlchemy, not pysqlite, emit BEGIN.

    pysqlite defers BEGIN until the first DML statement, so a SAVEPOINT
    issued earlier opens (and its RELEASE commits) the whole transaction.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
) -> Engine:
    """Create an engine for ``database_url`` without registering it."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            isolation_level="READ COMMITTED",
        )

    options: dict = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **options)
    _enable_sqlite_savepoints(engine)
    return engine


def init_engine_from_url(database_url: str, **engine_options) -> Engine:
    """
    Build the process-wide engine and session factory.

    ``engine_options`` are passed to ``build_engine``.  A second call
    replaces (and disposes) the first engine.
    """
    reset_engine()
    engine = build_engine(database_url, **engine_options)
    _Registry.engine = engine
    _Registry.factory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": engine.dialect.name,
            "echo": engine.echo,
        },
    )
    return engine


def get_engine() -> Engine:
    if _Registry.engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _Registry.engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory handing each request (or thread) its own session."""
    if _Registry.factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _Registry.factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    One transaction around a block of kernel calls.

    Commits on normal exit; rolls back and re-raises on any exception;
    always closes the session.

    Usage:
        with session_scope() as session:
            ProductionService(session, ...).create_order(request)
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from compounding_kernel.db.base import Base
    import compounding_kernel.models  # noqa: F401  (registers every table)

    return Base.metadata


def create_tables(engine: Engine | None = None) -> None:
    _metadata().create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every kernel table.  Tests and local resets only."""
    _metadata().drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose and forget the process-wide engine."""
    if _Registry.engine is not None:
        _Registry.engine.dispose()
    _Registry.engine = None
    _Registry.factory = None


def is_postgres() -> bool:
    engine = _Registry.engine
    return engine is not None and engine.dialect.name == "postgresql"


atexit.register(reset_engine)
