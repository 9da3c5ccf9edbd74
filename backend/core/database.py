"""Shared SQLAlchemy engine for the installment store."""

from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine

from backend.core.config import settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Create (and cache) the SQLAlchemy engine used by the agent."""
    return sa.create_engine(settings.database_url, future=True, pool_pre_ping=True)


@contextmanager
def get_connection(engine: Engine | None = None) -> Iterator[Connection]:
    """Yield a plain connection (no transaction opened)."""
    engine = engine or get_engine()
    with engine.connect() as conn:
        yield conn


__all__ = ["get_engine", "get_connection"]
