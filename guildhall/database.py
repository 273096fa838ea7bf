"""
Postgres access for the SQL session store.

One async engine per process, created lazily from DATABASE_URL. The store
works in short transactions: each session mutation opens one, locks the
session row and commits or rolls back as a unit.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .tables import metadata

_engine: AsyncEngine | None = None

# Hosted providers hand out plain postgres URLs; asyncpg needs the driver suffix
_ASYNC_SCHEMES = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
}


def _get_database_url() -> str:
    """Read DATABASE_URL and point it at the asyncpg driver."""
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL must be set to use the SQL session store.")

    for prefix, replacement in _ASYNC_SCHEMES.items():
        if database_url.startswith(prefix):
            return replacement + database_url[len(prefix):]
    return database_url


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        # Concurrent joins on one session queue on its row lock, each holding
        # a pooled connection while it waits
        _engine = create_async_engine(
            _get_database_url(),
            echo=os.environ.get("SQL_ECHO", "").lower() == "true",
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
        )
    return _engine


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[AsyncConnection, None]:
    """
    Open a transaction for one session operation.

    Row locks taken inside (SELECT ... FOR UPDATE on the session) are held
    until the block exits. Commits on success; any exception, including the
    SessionErrors raised by capacity checks, rolls everything back.

    Usage:
        async with get_transaction() as conn:
            session = await fetch_session(conn, session_id, for_update=True)
    """
    async with get_engine().begin() as conn:
        yield conn


async def create_tables() -> None:
    """Create the sessions and session_participants tables if missing."""
    async with get_transaction() as conn:
        await conn.run_sync(metadata.create_all)


async def close_engine() -> None:
    """Dispose the pool. Called from SessionRuntime.shutdown()."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def is_configured() -> bool:
    """True when DATABASE_URL is set, i.e. the SQL store can be used."""
    return bool(os.environ.get("DATABASE_URL"))
