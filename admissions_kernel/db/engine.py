"""
Module: admissions_kernel.db.engine
Responsibility: One process-wide engine and session factory for the ledger,
    plus the commit-or-rollback ``session_scope`` used by hosts.
Architecture position: Kernel > DB.  create_tables/drop_tables import the
    models package so that every table is registered on the metadata.

Backends:
    - PostgreSQL (production): READ COMMITTED.  Serialization comes from
      explicit row locks on the sequence counters, the per-branch cashbook
      counter and the admission being recomputed.
    - SQLite (development, tests): pysqlite's implicit transactions are
      switched off so SAVEPOINTs nest properly; ``:memory:`` databases share
      one connection through StaticPool.

Failure modes:
    - RuntimeError from any accessor before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from admissions_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Database engine not initialized; call init_engine_from_url() first"


def _sqlite_engine(database_url: str, echo: bool) -> Engine:
    url = make_url(database_url)
    options: dict[str, Any] = {"echo": echo, "connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    engine = create_engine(url, **options)

    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the ledger's engine and session factory, replacing any previous one.

    Pool arguments apply to PostgreSQL only.  Sessions are created with
    ``expire_on_commit=False`` so DTOs built after the facade commits still
    read loaded attributes without a new query.
    """
    global _engine, _session_factory

    dialect = make_url(database_url).get_backend_name()
    if dialect == "sqlite":
        engine = _sqlite_engine(database_url, echo)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    if _engine is not None:
        _engine.dispose()
    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "echo": echo, "pool_size": None if dialect == "sqlite" else pool_size},
    )
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that open their own sessions (one per worker thread)."""
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Session for one unit of work: committed on success, rolled back and
    re-raised on error, closed either way.

        with session_scope() as session:
            AdmissionsLedger(session).drain_pending_recomputes()

    The ledger facade commits its own operations; the final commit here only
    covers work done directly on the session.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    from admissions_kernel.db.base import Base
    import admissions_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every ledger table.  Tests and local resets only."""
    from admissions_kernel.db.base import Base
    import admissions_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)
