"""
Order Service — database access

Engine and session factory construction, plus the unit of work every write
operation runs in: one transaction that commits on success and rolls back
on any exception. Storage failures surface as PersistenceError.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from .errors import PersistenceError
from .tables import metadata

logger = logging.getLogger(__name__)


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url, echo=echo, connect_args={"timeout": 30}
        )
        _serialize_sqlite_writers(engine)
        return engine
    return create_async_engine(database_url, echo=echo)


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    A deferred transaction that reads first and writes later can fail with
    "database is locked" when another connection already holds the write
    lock. Taking the write lock up front makes writers queue on the busy
    timeout instead.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # stop the driver from emitting its own deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


@asynccontextmanager
async def unit_of_work(session_factory: sessionmaker) -> AsyncIterator[AsyncSession]:
    """Run the enclosed block as one atomic transaction."""
    async with session_factory() as session:
        try:
            async with session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.exception("Transaction aborted by the storage layer")
            raise PersistenceError(f"Transaction failed: {exc}") from exc
