"""Database layer - engine, base classes and column types."""

from agency_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from agency_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from agency_kernel.db.types import round_whole, to_decimal

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "reset_engine",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "round_whole",
    "to_decimal",
]
