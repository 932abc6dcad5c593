"""
Module: reservation_kernel.db.constraints
Responsibility: Store-level enforcement of the no-overlap invariant on
    PostgreSQL.  Installed after ``Base.metadata.create_all``.
Architecture position: Kernel > DB.  MUST NOT import from models/ or services/.

Invariants enforced:
    - No two reservations of one resource whose status is pending or
      approved may have intersecting blocked intervals
      ``[block_start, block_end)``.  Enforced by a GiST exclusion constraint,
      so two transactions that both passed the application-level check
      cannot both commit.

Failure modes:
    - IntegrityError (SQLSTATE 23P01, exclusion_violation) on a racing
      insert.  ReservationService translates it into
      ReservationConflictError.

Non-goals:
    - SQLite has no exclusion constraints.  There the ORM ``before_insert``
      listener on ReservationModel re-checks overlap on the inserting
      connection, and the resource row lock serializes creators.
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

from reservation_kernel.logging_config import get_logger

logger = get_logger("db.constraints")

EXCLUSION_CONSTRAINT_NAME = "ex_reservations_no_overlap"

_INSTALL_SQL = (
    "CREATE EXTENSION IF NOT EXISTS btree_gist",
    f"ALTER TABLE reservations DROP CONSTRAINT IF EXISTS {EXCLUSION_CONSTRAINT_NAME}",
    f"""
    ALTER TABLE reservations
    ADD CONSTRAINT {EXCLUSION_CONSTRAINT_NAME}
    EXCLUDE USING gist (
        resource_id WITH =,
        tsrange(block_start, block_end, '[)') WITH &&
    )
    WHERE (status IN ('pending', 'approved'))
    """,
)

_UNINSTALL_SQL = (
    f"ALTER TABLE IF EXISTS reservations DROP CONSTRAINT IF EXISTS {EXCLUSION_CONSTRAINT_NAME}",
)


def install_reservation_constraints(engine: Engine) -> bool:
    """Install the exclusion constraint.  Returns False on non-PostgreSQL."""
    if engine.dialect.name != "postgresql":
        logger.debug(
            "reservation_constraints_skipped",
            extra={"dialect": engine.dialect.name},
        )
        return False

    with engine.begin() as conn:
        for statement in _INSTALL_SQL:
            conn.execute(text(statement))

    logger.info(
        "reservation_constraints_installed",
        extra={"constraint": EXCLUSION_CONSTRAINT_NAME},
    )
    return True


def uninstall_reservation_constraints(engine: Engine) -> None:
    if engine.dialect.name != "postgresql":
        return
    with engine.begin() as conn:
        for statement in _UNINSTALL_SQL:
            conn.execute(text(statement))


def is_overlap_violation(exc: Exception) -> bool:
    """True when a DBAPI error is the exclusion constraint firing."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "23P01":
        return True
    return EXCLUSION_CONSTRAINT_NAME in str(orig or exc)
