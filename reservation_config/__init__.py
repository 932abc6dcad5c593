"""
reservation_config -- single public entrypoint for engine settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  Returns a frozen ``EngineSettings``.

Architecture position:
    Configuration.  Sits above ``reservation_kernel`` (it builds kernel
    domain values such as ``Role`` and ``ReturnVerificationPolicy``) and
    below ``reservation_services``.  The kernel and the engines MUST NEVER
    import from ``reservation_config``; the orchestrator receives an
    ``EngineSettings`` by injection.

Invariants enforced:
    - Layering: bundled ``defaults.yaml``, then the explicit file, then
      environment overrides.
    - Validation before use: invalid settings never produce an
      ``EngineSettings``.

Failure modes:
    - ``FileNotFoundError`` -- explicit settings file missing.
    - ``ConfigurationError`` (a ``ValueError``) -- validation failed.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``RESERVATION_CONFIG_TRACE`` log entry with the source files and the
    effective policy-related settings.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from reservation_config.loader import load_yaml_file, merge_settings, parse_settings
from reservation_config.schema import EngineSettings
from reservation_config.validator import (
    ConfigurationError,
    ConfigValidationResult,
    validate_settings,
)

_logger = logging.getLogger("reservation_kernel.config")

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

ENV_OVERRIDES: dict[str, str] = {
    "RESERVATION_DATABASE_URL": "database_url",
    "RESERVATION_LOG_LEVEL": "log_level",
}


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineSettings:
    """The ONLY public settings entrypoint.

    Args:
        path: Optional YAML file overlaying the bundled defaults.
        environ: Environment mapping; defaults to ``os.environ``.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ConfigurationError: If the merged settings fail validation.
    """
    environ = os.environ if environ is None else environ
    sources = [str(DEFAULTS_FILE)]

    data = load_yaml_file(DEFAULTS_FILE)
    if path is not None:
        data = merge_settings(data, load_yaml_file(Path(path)))
        sources.append(str(path))

    for variable, key in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value:
            data[key] = value
            sources.append(f"env:{variable}")

    validation = validate_settings(data)
    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"detail": warning})
    if not validation.is_valid:
        raise ConfigurationError(validation.errors)

    settings = parse_settings(data)

    _logger.info(
        "RESERVATION_CONFIG_TRACE",
        extra={
            "trace_type": "RESERVATION_CONFIG_TRACE",
            "sources": sources,
            "calendar_timezone": settings.calendar_timezone,
            "conflict_granularity": settings.conflict_granularity,
            "default_required_role": settings.default_required_role.value,
            "max_recurrence_instances": settings.max_recurrence_instances,
        },
    )
    return settings


__all__ = [
    "ConfigValidationResult",
    "ConfigurationError",
    "EngineSettings",
    "get_active_config",
    "validate_settings",
]
