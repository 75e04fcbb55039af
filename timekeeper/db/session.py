"""
Process-wide async engine and the session factory built on it.

PostgreSQL (asyncpg) gets a sized, recycled pool; SQLite (aiosqlite) is used
for local runs and must allow its connection to cross threads.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from timekeeper.core.config import settings


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if url.startswith("postgresql"):
        options.update(pool_size=20, max_overflow=10, pool_recycle=300)
    elif url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Records stay readable after commit; the audit sink opens its own sessions here.
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
