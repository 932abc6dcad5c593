"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services inherit
    from BaseService, receiving a SQLAlchemy ``Session`` that they use
    via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Every service in ``reservation_kernel/services/`` that performs write
    operations extends this class.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The caller (the workflow
    orchestrator or a test) owns commit/rollback, so a recurring batch is
    persisted entirely or not at all.

Failure modes:
    - If a subclass calls ``session.commit()``, a recurring create could
      persist a prefix of its instances.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from reservation_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods -- those belong
          in ``reservation_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
