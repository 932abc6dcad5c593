"""
Engine settings schema.

``EngineSettings`` is the runtime artifact produced by
``reservation_config.get_active_config()``.  It is frozen; the orchestrator
holds one for its whole lifetime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from zoneinfo import ZoneInfo

from reservation_kernel.domain.reservation import ReturnVerificationPolicy
from reservation_kernel.domain.roles import Role

GRANULARITIES: frozenset[str] = frozenset({"day", "timestamp"})


@dataclass(frozen=True)
class EngineSettings:
    database_url: str = "sqlite+pysqlite:///:memory:"
    log_level: str = "INFO"
    calendar_timezone: str = "UTC"
    conflict_granularity: str = "day"
    default_required_role: Role = Role.MANAGER
    default_policy_role: Role = Role.ADMIN
    max_recurrence_instances: int = 366
    default_return_verification: ReturnVerificationPolicy = field(
        default_factory=ReturnVerificationPolicy,
    )

    @property
    def timezone(self) -> tzinfo:
        """Calendar timezone used for day-granularity blocking."""
        return ZoneInfo(self.calendar_timezone)
