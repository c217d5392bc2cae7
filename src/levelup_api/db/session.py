"""Async engine and session factory wiring."""

from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from levelup_api.core.settings import settings


def _enable_sqlite_write_locking(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the database write lock up front.

    pysqlite defers BEGIN until the first DML statement, which lets two readers
    both pass a stock check before either writes. Emitting ``BEGIN IMMEDIATE``
    ourselves serializes writers (the second one waits on the busy timeout) and
    keeps SAVEPOINT semantics intact.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn) -> None:  # noqa: ANN001
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_for_url(url: str, *, echo: bool = False, **kwargs) -> AsyncEngine:
    """Create an async engine, applying SQLite locking semantics where needed."""

    engine = create_async_engine(url, echo=echo, future=True, **kwargs)
    if make_url(url).get_backend_name() == "sqlite":
        _enable_sqlite_write_locking(engine)
    return engine


engine = create_engine_for_url(settings.database_url, echo=settings.database_echo)
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield a session scoped to one unit of work."""

    async with async_session() as session:
        yield session
