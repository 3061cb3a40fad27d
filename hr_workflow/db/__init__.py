"""Database layer - engine, base classes and column types."""

from hr_workflow.db.base import UUID, Base, UTCDateTime, UUIDString
from hr_workflow.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "Base",
    "UTCDateTime",
    "UUID",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
]
