"""
Workflow settings schema.

The frozen runtime settings object produced by ``get_active_config()``.
YAML sets are parsed into it by the loader; nothing else constructs it
outside tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class WorkflowSettings:
    """Everything the kernel reads from configuration."""

    config_id: str
    version: int
    database_url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    log_level: str = "INFO"
    batch_max_workers: int = 1
    default_leave_daily_hours: Decimal = Decimal("8.00")
    leave_daily_hours: Mapping[str, Decimal] = field(
        default_factory=lambda: MappingProxyType({}),
    )
    checksum: str = ""
