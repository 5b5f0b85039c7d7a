"""
Engine and session helpers.

Session factories created here produce ``JsonTrackingSession`` sessions, so
in-place mutation of JSON-backed attributes is written on the next flush.
"""

from .utils import (
    create_all,
    create_all_async,
    create_async_engine,
    create_async_sessionmaker,
    create_engine,
    create_sessionmaker,
)

__all__ = [
    "create_all",
    "create_all_async",
    "create_async_engine",
    "create_async_sessionmaker",
    "create_engine",
    "create_sessionmaker",
]
