"""Database layer: declarative base, engine/session construction, store constraints."""

from reservation_kernel.db.base import Base, UTCDateTime, UUIDString
from reservation_kernel.db.engine import (
    build_engine,
    build_session_factory,
    create_tables,
    drop_tables,
)

__all__ = [
    "Base",
    "UTCDateTime",
    "UUIDString",
    "build_engine",
    "build_session_factory",
    "create_tables",
    "drop_tables",
]
