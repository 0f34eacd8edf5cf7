"""SQLAlchemy async engine and session factory."""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings


def _build_engine_kwargs() -> dict:
    """Return engine kwargs appropriate for the configured dialect."""
    if settings.is_postgres:
        return {
            "echo": settings.DEBUG,
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_timeout": settings.DB_POOL_TIMEOUT,
            "pool_pre_ping": True,   # ensure stale connections are recycled
            "pool_recycle": 1800,    # recycle connections older than 30 min
        }
    # SQLite: single file, no pool tunables
    return {
        "echo": settings.DEBUG,
        "connect_args": {"check_same_thread": False},
    }


engine = create_async_engine(settings.DATABASE_URL, **_build_engine_kwargs())


if settings.is_sqlite:
    # WAL lets the detached audit / last-used writers run alongside request
    # sessions; busy_timeout makes a second writer wait instead of failing
    # with "database is locked".
    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, _conn_rec):  # type: ignore[misc]
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """FastAPI dependency: yields a session, then commits or rolls back."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
