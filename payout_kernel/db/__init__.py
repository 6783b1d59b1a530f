"""Database layer - engine, base classes, column types, immutability."""

from payout_kernel.db.base import UUID, Base, UTCDateTime, UUIDString
from payout_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from payout_kernel.db.types import MONEY, RATE

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "MONEY",
    "RATE",
]
