"""
Database connection management and the SQLAlchemy unit of work.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
    AsyncEngine,
)
from sqlalchemy.orm.exc import StaleDataError

from .config import get_settings
from .models.base import Base
from .repositories import (
    BookingRepository,
    GymClassRepository,
    MemberRepository,
    PermissionRepository,
    SessionRepository,
    SubscriptionRepository,
    translate_db_errors,
)
from .repositories.base import is_retryable_db_error
from .unit_of_work import AbstractUnitOfWork
from .utils.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)

# Global engine and session factory
engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_database_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create and configure the database engine with connection pooling."""
    settings = get_settings()
    url = database_url or settings.database_url

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.debug)

    return create_async_engine(
        url,
        # Connection pool configuration for concurrent access
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=settings.debug,
        connect_args={
            "server_settings": {
                "application_name": "class_booking",
            }
        }
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory for database sessions."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=True,
    )


async def init_database(create_tables: bool = True) -> None:
    """Initialize database connection and optionally create tables."""
    global engine, async_session_factory

    logger.info("Initializing database connection...")

    engine = create_database_engine()
    async_session_factory = create_session_factory(engine)

    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized successfully")


async def close_database() -> None:
    """Close database connections."""
    global engine, async_session_factory

    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        engine = None
        async_session_factory = None
        logger.info("Database connections closed")


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session with automatic cleanup.

    Commits when the block exits cleanly, rolls back otherwise.

    Usage:
        async with get_db_session() as session:
            result = await session.execute(query)
    """
    if async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Unit of work over one ``AsyncSession`` and one transaction.

    Every repository is bound to the tenant given at construction, so all
    reads and writes inside the block are tenant scoped.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], tenant_id: uuid.UUID):
        super().__init__(tenant_id)
        self.session_factory = session_factory
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        await super().__aenter__()
        self.session = self.session_factory()
        await self.session.begin()

        self.members = MemberRepository(self.session, self.tenant_id)
        self.subscriptions = SubscriptionRepository(self.session, self.tenant_id)
        self.sessions = SessionRepository(self.session, self.tenant_id)
        self.gym_classes = GymClassRepository(self.session, self.tenant_id)
        self.bookings = BookingRepository(self.session, self.tenant_id)
        self.permissions = PermissionRepository(self.session, self.tenant_id)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
        finally:
            await self.session.close()
            self.session = None

        # Lock waits and deadlocks surface on reads too, not only on flush
        if isinstance(exc_val, StaleDataError):
            raise ConcurrencyError("Concurrent modification detected") from exc_val
        if isinstance(exc_val, DBAPIError) and is_retryable_db_error(exc_val):
            logger.warning("Transaction conflict for tenant %s: %s", self.tenant_id, exc_val)
            raise ConcurrencyError("Transaction conflict") from exc_val

    async def _commit(self) -> None:
        async with translate_db_errors("commit"):
            await self.session.commit()

    async def rollback(self) -> None:
        if self.session is not None:
            await self.session.rollback()


def unit_of_work_factory(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> Callable[[uuid.UUID], SqlAlchemyUnitOfWork]:
    """
    Build a tenant-scoped unit of work factory.

    Args:
        session_factory: Session factory to use; defaults to the one set up
            by ``init_database``.

    Returns:
        Callable taking a tenant id and returning a fresh unit of work
    """
    factory = session_factory or async_session_factory
    if factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    def _create(tenant_id: uuid.UUID) -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(factory, tenant_id)

    return _create
