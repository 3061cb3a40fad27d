"""
Configuration Loader (``workflow_config.loader``).

Responsibility
--------------
Reads a YAML settings set, applies environment overrides, and parses the
result into a frozen ``WorkflowSettings``.  Called only by
``workflow_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* ``compute_checksum`` is a deterministic SHA-256 over the effective
  (post-override) settings, so the trace line identifies what actually ran.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database.url``  -> ``KeyError``.
* Non-numeric hours or worker counts  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from workflow_config.schema import WorkflowSettings

ENV_DATABASE_URL = "HR_WORKFLOW_DATABASE_URL"
ENV_LOG_LEVEL = "HR_WORKFLOW_LOG_LEVEL"
ENV_BATCH_MAX_WORKERS = "HR_WORKFLOW_BATCH_MAX_WORKERS"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_hours(value: Any, name: str) -> Decimal:
    try:
        hours = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name}: not a number: {value!r}")
    if hours < 0 or hours > 24:
        raise ValueError(f"{name}: daily hours must be within 0..24, got {hours}")
    return hours


def parse_positive_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name}: not an integer: {value!r}")
    if number < 1:
        raise ValueError(f"{name}: must be >= 1, got {number}")
    return number


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of the raw settings with environment values applied."""
    merged = {key: dict(value) if isinstance(value, dict) else value
              for key, value in data.items()}
    if environ.get(ENV_DATABASE_URL):
        merged.setdefault("database", {})["url"] = environ[ENV_DATABASE_URL]
    if environ.get(ENV_LOG_LEVEL):
        merged.setdefault("logging", {})["level"] = environ[ENV_LOG_LEVEL]
    if environ.get(ENV_BATCH_MAX_WORKERS):
        merged.setdefault("batch", {})["max_workers"] = environ[ENV_BATCH_MAX_WORKERS]
    return merged


def parse_settings(data: dict[str, Any]) -> WorkflowSettings:
    """Parse the (override-applied) raw mapping into ``WorkflowSettings``."""
    database = data.get("database") or {}
    logging_section = data.get("logging") or {}
    batch = data.get("batch") or {}
    leave = data.get("leave") or {}

    level = str(logging_section.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level: unknown level {level!r}")

    daily_hours = {
        str(leave_type): parse_hours(hours, f"leave.daily_hours.{leave_type}")
        for leave_type, hours in (leave.get("daily_hours") or {}).items()
    }

    return WorkflowSettings(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        database_url=database["url"],
        echo=bool(database.get("echo", False)),
        pool_size=parse_positive_int(database.get("pool_size", 10), "database.pool_size"),
        max_overflow=int(database.get("max_overflow", 10)),
        log_level=level,
        batch_max_workers=parse_positive_int(
            batch.get("max_workers", 1), "batch.max_workers",
        ),
        default_leave_daily_hours=parse_hours(
            leave.get("default_daily_hours", "8.00"), "leave.default_daily_hours",
        ),
        leave_daily_hours=MappingProxyType(daily_hours),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
