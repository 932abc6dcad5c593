"""
Settings loader (``reservation_config.loader``).

Responsibility
--------------
Reads YAML settings files and turns a validated raw mapping into
``EngineSettings``.  Runtime callers go through
``reservation_config.get_active_config()`` instead.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* A top level that is not a mapping -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from reservation_config.schema import EngineSettings
from reservation_kernel.domain.reservation import ReturnVerificationPolicy
from reservation_kernel.domain.roles import Role


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: settings must be a mapping, got {type(data).__name__}")
    return data


def merge_settings(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Overlay one level deep; nested mappings are merged key by key."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """Build ``EngineSettings`` from an already validated mapping."""
    defaults = EngineSettings()
    return EngineSettings(
        database_url=str(data.get("database_url", defaults.database_url)),
        log_level=str(data.get("log_level", defaults.log_level)).upper(),
        calendar_timezone=str(data.get("calendar_timezone", defaults.calendar_timezone)),
        conflict_granularity=str(
            data.get("conflict_granularity", defaults.conflict_granularity)
        ),
        default_required_role=Role(
            data.get("default_required_role", defaults.default_required_role.value)
        ),
        default_policy_role=Role(
            data.get("default_policy_role", defaults.default_policy_role.value)
        ),
        max_recurrence_instances=int(
            data.get("max_recurrence_instances", defaults.max_recurrence_instances)
        ),
        default_return_verification=ReturnVerificationPolicy.from_mapping(
            data.get("default_return_verification"),
        ),
    )
