"""
Settings validator (``reservation_config.validator``).

Responsibility
--------------
Checks the merged raw settings mapping before it is turned into
``EngineSettings``.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``) -> settings MUST NOT
  be used; ``get_active_config`` raises ``ConfigurationError``.
* Validation warnings -> settings are used, the warnings are logged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from reservation_config.schema import GRANULARITIES
from reservation_kernel.domain.roles import Role

KNOWN_KEYS: frozenset[str] = frozenset({
    "database_url",
    "log_level",
    "calendar_timezone",
    "conflict_granularity",
    "default_required_role",
    "default_policy_role",
    "max_recurrence_instances",
    "default_return_verification",
})

_RETURN_POLICY_KEYS: frozenset[str] = frozenset({
    "enabled", "require_photo", "require_verification",
})

_LOG_LEVELS: frozenset[str] = frozenset({
    "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
})


class ConfigurationError(ValueError):
    """Settings failed validation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid reservation settings: " + "; ".join(self.errors))


@dataclass
class ConfigValidationResult:
    """
    Result of settings validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_settings(data: dict[str, Any]) -> ConfigValidationResult:
    result = ConfigValidationResult()

    for key in sorted(set(data) - KNOWN_KEYS):
        result.add_warning(f"Unknown setting '{key}' ignored")

    if not str(data.get("database_url") or "").strip():
        result.add_error("database_url must be a non-empty URL")

    if str(data.get("log_level", "INFO")).upper() not in _LOG_LEVELS:
        result.add_error(f"log_level '{data.get('log_level')}' is not a logging level")

    _validate_timezone(data.get("calendar_timezone", "UTC"), result)

    granularity = data.get("conflict_granularity", "day")
    if granularity not in GRANULARITIES:
        result.add_error(
            f"conflict_granularity '{granularity}' must be one of {sorted(GRANULARITIES)}"
        )

    for key in ("default_required_role", "default_policy_role"):
        value = data.get(key)
        if value is not None and value not in {r.value for r in Role}:
            result.add_error(f"{key} '{value}' is not a role")
    if data.get("default_required_role") == Role.USER.value:
        result.add_warning(
            "default_required_role 'user' still requires a manager or admin to decide"
        )

    cap = data.get("max_recurrence_instances", 366)
    if isinstance(cap, bool) or not isinstance(cap, int) or cap < 1:
        result.add_error("max_recurrence_instances must be a positive integer")

    _validate_return_policy(data.get("default_return_verification"), result)

    return result


def _validate_timezone(name: Any, result: ConfigValidationResult) -> None:
    try:
        ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError):
        result.add_error(f"calendar_timezone '{name}' is not a known timezone")


def _validate_return_policy(value: Any, result: ConfigValidationResult) -> None:
    if value is None:
        return
    if not isinstance(value, dict):
        result.add_error("default_return_verification must be a mapping")
        return
    for key, flag in value.items():
        if key not in _RETURN_POLICY_KEYS:
            result.add_error(f"default_return_verification.{key} is not a policy flag")
        elif not isinstance(flag, bool):
            result.add_error(f"default_return_verification.{key} must be true or false")
