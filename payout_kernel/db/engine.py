"""
Module: payout_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    lock-timeout control and transactional scope utilities.  Single point of
    database connection configuration for the payout subsystem.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/ or domain/ (create_tables imports
    models/ lazily so that Base.metadata is complete).

Invariants enforced:
    - PostgreSQL sessions run at READ COMMITTED; services take explicit
      row locks (SELECT ... FOR UPDATE) on the wallet and payout rows.
    - Every PostgreSQL unit of work is bounded by ``SET LOCAL lock_timeout``
      so that a blocked request aborts with a retryable error instead of
      hanging.
    - SQLite has no row locks: each transaction opens with BEGIN IMMEDIATE,
      which takes the database write lock up front and serializes writers.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory are called
      before init_engine_from_url().
    - OperationalError (lock timeout, "database is locked") surfaces from
      the DBAPI; the orchestrator translates it into ConflictError.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from payout_kernel.logging_config import get_logger

logger = get_logger("db.engine")

DEFAULT_LOCK_TIMEOUT_MS = 5000

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None
_lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS


def _install_sqlite_locking(engine: Engine) -> None:
    """Take over pysqlite transaction handling so BEGIN IMMEDIATE is used.

    pysqlite defers BEGIN until the first DML statement, which breaks both
    SAVEPOINT handling and up-front write locking.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    PostgreSQL URLs get a QueuePool and READ COMMITTED isolation.  SQLite URLs
    get BEGIN IMMEDIATE transactions and a busy timeout equal to
    ``lock_timeout_ms``.

    Args:
        database_url: postgresql://... or sqlite:///path.
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (PostgreSQL only).
        max_overflow: Connections beyond pool_size (PostgreSQL only).
        pool_pre_ping: Test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
        lock_timeout_ms: Upper bound on row-lock waits per unit of work.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory, _lock_timeout_ms

    if _engine is not None:
        _engine.dispose()

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=pool_pre_ping,
            connect_args={
                "check_same_thread": False,
                "timeout": lock_timeout_ms / 1000,
            },
        )
        _install_sqlite_locking(engine)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _engine = engine
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)
    _lock_timeout_ms = lock_timeout_ms

    logger.info(
        "engine_initialized",
        extra={
            "dialect": engine.dialect.name,
            "pool_size": pool_size,
            "lock_timeout_ms": lock_timeout_ms,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory; each worker thread creates its own session.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def apply_lock_timeout(session: Session, timeout_ms: int | None = None) -> None:
    """
    Bound row-lock waits for the current transaction.

    PostgreSQL only: issues ``SET LOCAL lock_timeout``, which lasts until the
    transaction ends.  SQLite relies on the busy timeout set at connect time.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    ms = int(timeout_ms if timeout_ms is not None else _lock_timeout_ms)
    session.execute(text(f"SET LOCAL lock_timeout = '{ms}ms'"))


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; rolls back and re-raises on exception.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """
    Create all payout tables.

    Imports payout_kernel.models so Base.metadata holds every table.
    """
    import payout_kernel.models  # noqa: F401
    from payout_kernel.db.base import Base

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    import payout_kernel.models  # noqa: F401
    from payout_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Reset the engine and session factory. Useful for test cleanup."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)
