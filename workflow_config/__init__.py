"""
workflow_config -- single public entrypoint for workflow kernel settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or ``HR_WORKFLOW_*`` environment variables directly.

Architecture position:
    Configuration.  Sits above ``hr_workflow``; the kernel never imports
    from this package.  The orchestrator's ``from_settings`` translates
    settings into kernel constructor arguments.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through ``get_active_config()``.
    - Environment overrides win over the YAML set.
    - Deterministic checksum: the same effective settings always produce
      the same ``WorkflowSettings.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or malformed settings.

Audit relevance:
    Every successful call emits a ``WORKFLOW_CONFIG_TRACE`` log entry with
    the config id, version and checksum, tying each run to the exact
    settings that governed it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from workflow_config.loader import apply_env_overrides, load_yaml_file, parse_settings
from workflow_config.schema import WorkflowSettings

_logger = logging.getLogger("hr_workflow.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> WorkflowSettings:
    """The ONLY public configuration entrypoint.

    Args:
        path: Settings YAML to read.  Defaults to workflow_config/sets/default.yaml.
        environ: Environment mapping for overrides.  Defaults to ``os.environ``.

    Returns:
        Frozen ``WorkflowSettings``.

    Raises:
        FileNotFoundError: If the settings file is missing.
        KeyError: If ``database.url`` is absent after overrides.
        ValueError: If a value fails validation.
    """
    source = path or _DEFAULT_CONFIG_FILE
    raw = load_yaml_file(source)
    effective = apply_env_overrides(raw, os.environ if environ is None else environ)
    settings = parse_settings(effective)

    _logger.info(
        "WORKFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "WORKFLOW_CONFIG_TRACE",
            "config_set_id": settings.config_id,
            "config_set_version": settings.version,
            "checksum": settings.checksum,
            "source": str(source),
            "batch_max_workers": settings.batch_max_workers,
            "leave_type_count": len(settings.leave_daily_hours),
        },
    )
    return settings


__all__ = [
    "WorkflowSettings",
    "get_active_config",
]
