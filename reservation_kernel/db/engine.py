"""
Module: reservation_kernel.db.engine
Responsibility: SQLAlchemy engine and session factory construction, table
    creation.  The single point of database connection configuration.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/constraints.py.  create_tables/drop_tables import models lazily.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with explicit row locks
      (SELECT ... FOR UPDATE) on the resource row during reservation
      creation, plus the no-overlap exclusion constraint.
    - SQLite (tests, local tooling) shares one connection for in-memory
      URLs so every session sees the same database.
"""

from sqlalchemy import create_engine, event, make_url
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from reservation_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
) -> Engine:
    """
    Create an engine for ``database_url`` without touching module state.

    PostgreSQL gets a pre-pinging QueuePool at READ COMMITTED.  SQLite gets
    foreign keys switched on and, for ``:memory:``, a StaticPool.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        isolation_level="READ COMMITTED",
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def create_tables(engine: Engine, install_constraints: bool = True) -> None:
    """
    Create all tables and, on PostgreSQL, the store-level overlap constraint.
    """
    from reservation_kernel.db.base import Base
    from reservation_kernel.db.constraints import install_reservation_constraints
    import reservation_kernel.models  # noqa: F401  -- registers every table

    Base.metadata.create_all(engine)
    installed = install_constraints and install_reservation_constraints(engine)
    logger.info(
        "tables_created",
        extra={"dialect": engine.dialect.name, "overlap_constraint": bool(installed)},
    )


def drop_tables(engine: Engine) -> None:
    """Drop all tables. Primarily for testing."""
    from reservation_kernel.db.base import Base
    from reservation_kernel.db.constraints import uninstall_reservation_constraints
    import reservation_kernel.models  # noqa: F401

    uninstall_reservation_constraints(engine)
    Base.metadata.drop_all(engine)
