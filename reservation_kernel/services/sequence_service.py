"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for audit events.  Uses
    a dedicated counter table with row-level locking (``SELECT ... FOR
    UPDATE``) so two concurrent appenders never read the same value.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by AuditorService before it links a new event into the chain.

Invariants enforced:
    - The locked counter row is the sole source of the next value; the
      aggregate-max-plus-one read is never used.
    - The increment is only visible after the caller's transaction
      commits.  A rollback returns the value.

Failure modes:
    - IntegrityError: Concurrent creation of the counter row on first use.
      The caller retries the append.
    - SQLite ignores ``FOR UPDATE``; writers there are serialized by the
      database lock and a stale read surfaces as an IntegrityError on
      ``audit_events.seq``, which the caller retries.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from reservation_kernel.logging_config import get_logger
from reservation_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    AUDIT_EVENT = "audit_event"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the named counter (creating it on first use), increment it and
        return the new value.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously committed for this name.
            - The counter row stays locked until the transaction ends.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  A writer racing to create the same row gets an
            # IntegrityError here and retries its whole append.
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing; None if never allocated."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
