from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from elms.config import Settings


logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _normalize_url(url: str) -> str:
    """Switch plain PostgreSQL URLs to the async psycopg driver."""
    if url.startswith("postgresql+asyncpg://"):
        return url.replace("postgresql+asyncpg://", "postgresql+psycopg://")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://")
    return url


def create_engine_for(settings: Settings) -> AsyncEngine:
    """Create the async engine with settings appropriate to the backend."""
    if settings.is_sqlite:
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in settings.DATABASE_URL:
            # Every session must see the same in-memory database
            kwargs["poolclass"] = StaticPool
        engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG, **kwargs)

        # Let SQLAlchemy own BEGIN so SAVEPOINTs nest inside the request transaction
        @event.listens_for(engine.sync_engine, "connect")
        def _on_sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _on_sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return engine

    return create_async_engine(
        _normalize_url(settings.DATABASE_URL),
        echo=settings.DEBUG,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )


class Database:
    """
    Owns the engine and session factory for one application instance.

    Stored on ``app.state.db`` by the application factory so that request
    handlers, startup hooks and tests all share the same store handle
    without module-level globals.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = create_engine_for(settings)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Unit of work: commit on success, roll back on any error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create all tables registered on the declarative base."""
        from elms import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready (%d tables)", len(Base.metadata.tables))

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a request-scoped database session."""
    database: Database = request.app.state.db
    async with database.session() as session:
        yield session
