# app/db/session.py

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from app.core.config import settings

# SQLite only aliases rowid for INTEGER PRIMARY KEY, so BIGINT keys need a variant
BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def configure_sqlite(engine: AsyncEngine) -> None:
    """
    Open every SQLite transaction with BEGIN IMMEDIATE so concurrent writers
    wait on the database lock instead of failing on a lock upgrade.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # stop the driver from emitting its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        engine = create_async_engine(url, connect_args={"timeout": 30})
        configure_sqlite(engine)
        return engine
    return create_async_engine(
        url,
        pool_pre_ping=True,   # avoids stale connection errors
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        expire_on_commit=False,  # keep objects usable after commit
        class_=AsyncSession,
    )


# 1) Engine: one per app
engine = build_engine(settings.async_db_uri)

# 2) Session factory: creates short-lived sessions per request
AsyncSessionLocal = build_sessionmaker(engine)


# 3) Declarative Base: all models inherit from this
class Base(DeclarativeBase):
    pass


# 4) FastAPI dependency: yields a session and closes it safely
async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session
