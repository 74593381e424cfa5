"""
Database connection utilities.
The engine is created on first use so importing pricing modules never opens a connection.
"""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from src.common.settings import get_settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Shared engine for the configured DATABASE_URL."""

    return create_engine(get_settings().DATABASE_URL, pool_pre_ping=True, future=True)

