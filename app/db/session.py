"""Engines and sessions.

The API runs on the async engine; Temporal activities use the sync engine
from worker threads. Both point at the same ``DATABASE_URL``, rewritten to
the matching driver.
"""

from contextlib import contextmanager
from typing import AsyncIterator, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.core.config import settings

_ASYNC_DRIVERS = {"postgresql": "asyncpg", "sqlite": "aiosqlite"}


class Base(DeclarativeBase):
    pass


def engine_url(url: str, *, use_async: bool) -> str:
    """Point ``url`` at the async or sync driver of its backend.

    Unknown backends pass through untouched.
    """
    parsed = make_url(url)
    backend = parsed.get_backend_name()
    if backend not in _ASYNC_DRIVERS:
        return url
    drivername = f"{backend}+{_ASYNC_DRIVERS[backend]}" if use_async else backend
    return parsed.set(drivername=drivername).render_as_string(hide_password=False)


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_connection, connection_record):
    # ON DELETE CASCADE on contract_files depends on this
    if "sqlite" in type(dbapi_connection).__module__:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


async_engine = create_async_engine(engine_url(settings.DATABASE_URL, use_async=True), pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False)

sync_engine = create_engine(engine_url(settings.DATABASE_URL, use_async=False), pool_pre_ping=True)
SyncSessionLocal = sessionmaker(sync_engine, autoflush=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency; routes commit explicitly."""
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables() -> None:
    import app.db.models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Transactional sync session: commit on success, roll back on error."""
    session = SyncSessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
