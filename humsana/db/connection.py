"""
Signal Store Connection
=======================

Async, read-only access to the daemon's SQLite database (signals.db).
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def signal_store_url(db_path: Path, read_only: bool = True) -> str:
    """Build the aiosqlite URL for the signal store."""
    if read_only:
        return f"sqlite+aiosqlite:///file:{db_path.as_posix()}?mode=ro&uri=true"
    return f"sqlite+aiosqlite:///{db_path.as_posix()}"


@asynccontextmanager
async def open_signal_store(db_path: Path, read_only: bool = True) -> AsyncIterator[AsyncSession]:
    """
    Open a session on the signal store and dispose the engine afterwards.

    Each interlock request opens its own short-lived engine; nothing is
    shared between requests.
    """
    engine = create_async_engine(signal_store_url(db_path, read_only), echo=False)
    try:
        maker = async_sessionmaker(engine, expire_on_commit=False)
        async with maker() as session:
            yield session
    finally:
        await engine.dispose()
