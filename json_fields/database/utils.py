"""
Database utility functions for engine and session management.

This module provides helpers for creating engines and session factories whose
sessions detect in-place changes of JSON-backed attributes. Both the
synchronous and the asyncio flavours of SQLAlchemy are covered.

Functions:
- create_engine: Creates a SQLAlchemy engine
- create_sessionmaker: Creates a session factory producing tracking sessions
- create_all: Creates all tables of a model's metadata (for tests/dev)
- create_async_engine: Creates async SQLAlchemy engine with URL normalization
- create_async_sessionmaker: Creates async session factory with tracking sessions
- create_all_async: Async counterpart of create_all
"""

from __future__ import annotations

import re
from typing import Any, Optional

import sqlalchemy
from sqlalchemy import Engine, MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.ext.asyncio import create_async_engine as _create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from json_fields.change_tracking import JsonTrackingSession
from json_fields.core.config import get_settings


def create_engine(db_url: Optional[str] = None, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine.

    Args:
        db_url: Database connection URL, defaults to the ``JSON_FIELDS_DATABASE_URL`` setting
        **kwargs: Forwarded to ``sqlalchemy.create_engine``

    Returns:
        Configured Engine instance
    """
    return sqlalchemy.create_engine(db_url or get_settings().database_url, **kwargs)


def create_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    """Create a ``sessionmaker`` with safe defaults for this project.

    Sessions detect in-place changes of JSON-backed attributes before each flush.

    Args:
        engine: SQLAlchemy engine

    Returns:
        Configured session factory
    """
    return sessionmaker(engine, class_=JsonTrackingSession, expire_on_commit=False)


def create_all(engine: Engine, metadata: MetaData) -> None:
    """Create all tables for the given metadata.

    This is mainly intended for tests and local development.
    Production should use migrations instead.

    Args:
        engine: SQLAlchemy engine
        metadata: Metadata holding the tables, usually ``ModelBuilder.metadata``
    """
    metadata.create_all(engine)


def create_async_engine(db_url: Optional[str] = None, **kwargs: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    The helper normalizes Postgres URLs to ensure the async driver is used.
    For example, it rewrites ``postgresql://`` and other variants to
    ``postgresql+asyncpg://``.

    Args:
        db_url: Database connection URL, defaults to the ``JSON_FIELDS_DATABASE_URL`` setting
        **kwargs: Forwarded to ``sqlalchemy.ext.asyncio.create_async_engine``

    Returns:
        Configured AsyncEngine instance
    """
    url = re.sub(
        r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://",
        "postgresql+asyncpg://",
        db_url or get_settings().database_url,
        count=1,
    )
    return _create_async_engine(url, **kwargs)


def create_async_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project.

    Args:
        engine: Async SQLAlchemy engine

    Returns:
        Configured async session factory
    """
    return async_sessionmaker(engine, sync_session_class=JsonTrackingSession, expire_on_commit=False)


async def create_all_async(engine: AsyncEngine, metadata: MetaData) -> None:
    """Create all tables for the given metadata on an async engine.

    Args:
        engine: Async SQLAlchemy engine
        metadata: Metadata holding the tables
    """
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
