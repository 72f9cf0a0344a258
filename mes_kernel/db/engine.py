"""
Module: mes_kernel.db.engine
Responsibility: One process-wide SQLAlchemy engine for the board's store,
    the sessions made from it, and schema setup.
Architecture position: Kernel > DB.  Imports db/base.py; create_tables also
    pulls in models/ and the immutability listeners.

Invariants enforced:
    - session_scope() commits on success and rolls back on any error, so a
      transition's item rows and its log rows are written together.
    - SQLite (tests, a single workshop PC) shares one connection across
      threads; server databases get a pre-pinged connection pool.

Failure modes:
    - RuntimeError from get_engine/get_session before init_engine_from_url().
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from mes_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_make_session: sessionmaker[Session] | None = None

_NOT_READY = "database not initialised; call init_engine_from_url() first"


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> Engine:
    """
    Point the board at ``database_url`` (``sqlite:///board.db``,
    ``sqlite:///:memory:``, ``postgresql+psycopg://...``).

    Calling it again replaces the previous engine without disposing it;
    use reset_engine() for that.
    """
    global _engine, _make_session

    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        options = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    else:
        options = {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_pre_ping": True,
        }

    _engine = create_engine(url, echo=echo, **options)
    _make_session = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_READY)
    return _engine


def get_session() -> Session:
    """A new, caller-owned session."""
    if _make_session is None:
        raise RuntimeError(_NOT_READY)
    return _make_session()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Unit of work around one board change::

        with session_scope() as session:
            persist_result(SqlWorkflowStore(session), before, result)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("unit_of_work_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(register_listeners: bool = True) -> None:
    """Create the items, activity log and stock tables.  With
    ``register_listeners`` the activity log also becomes append-only at
    the ORM level."""
    from mes_kernel.db.base import Base
    import mes_kernel.models  # noqa: F401  registers the mapped classes

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})

    if register_listeners:
        from mes_kernel.db.immutability import register_immutability_listeners

        register_immutability_listeners()


def drop_tables() -> None:
    from mes_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget it."""
    global _engine, _make_session

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _make_session = None


atexit.register(reset_engine)
