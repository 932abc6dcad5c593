"""
Module: reservation_services.bootstrap
Responsibility: Production wiring.  Reads settings, configures logging,
    builds the engine and session factory, and constructs the workflow
    facade and the policy administrator around them.
Architecture position: Services.  The only module that combines
    ``reservation_config`` with ``reservation_kernel.db``.

Failure modes:
    - ConfigurationError / FileNotFoundError from ``get_active_config``.
    - SQLAlchemy errors if the database is unreachable while creating the
      schema.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from reservation_config import EngineSettings, get_active_config
from reservation_kernel.db.engine import build_engine, build_session_factory, create_tables
from reservation_kernel.domain.clock import Clock, SystemClock
from reservation_kernel.domain.notification import NotificationOutbox
from reservation_kernel.logging_config import configure_logging, get_logger
from reservation_services.policy_admin import ApprovalPolicyAdministrator
from reservation_services.workflow_orchestrator import ReservationWorkflow

logger = get_logger("services.bootstrap")


@dataclass(frozen=True)
class ReservationRuntime:
    """Everything a host application needs to serve reservation calls."""

    settings: EngineSettings
    engine: Engine
    session_factory: sessionmaker[Session]
    workflow: ReservationWorkflow
    policy_admin: ApprovalPolicyAdministrator


def build_reservation_runtime(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
    clock: Clock | None = None,
    outbox: NotificationOutbox | None = None,
    create_schema: bool = True,
) -> ReservationRuntime:
    """Build the workflow from settings (single entrypoint for production).

    Args:
        config_path: Optional YAML file overlaying the bundled defaults.
        environ: Environment mapping for ``RESERVATION_*`` overrides.
        clock: Optional clock; default SystemClock.
        outbox: Optional notification outbox; default writes rows to the
            ``notifications`` table.
        create_schema: Create missing tables and the overlap constraint.
    """
    settings = get_active_config(config_path, environ)
    configure_logging(level=settings.log_level)

    engine = build_engine(settings.database_url)
    if create_schema:
        create_tables(engine)
    session_factory = build_session_factory(engine)
    clock = clock or SystemClock()

    logger.info(
        "runtime_ready",
        extra={
            "dialect": engine.dialect.name,
            "conflict_granularity": settings.conflict_granularity,
        },
    )
    return ReservationRuntime(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        workflow=ReservationWorkflow(session_factory, settings, clock, outbox),
        policy_admin=ApprovalPolicyAdministrator(session_factory, settings, clock),
    )
