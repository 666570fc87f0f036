"""Database handle and transaction management.

The ``Database`` is constructed once at process start (the API lifespan or a
command-line entry point) and passed to every service that needs the store.
There is no module-level engine.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

import structlog
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from agrifaas.config.settings import Settings
from agrifaas.db.models.base import Base

logger = structlog.get_logger()

T = TypeVar("T")

# Conflicts a retried transaction can resolve: lock/serialization failures and
# unique-key races between concurrent writers.
RETRYABLE_ERRORS: tuple[type[Exception], ...] = (OperationalError, IntegrityError)


class Database:
    """Injected handle owning the engine and session factory.

    Usage:
        database = Database.from_settings(settings)
        await database.init()

        async with database.transaction() as session:
            session.add(obj)

        result = await database.run_in_transaction(apply_payment)
    """

    def __init__(self, engine: AsyncEngine, *, transaction_retries: int = 3):
        self.engine = engine
        self.transaction_retries = transaction_retries
        self.sessionmaker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Create the engine described by the application settings."""
        url = settings.DATABASE_URL
        if url.startswith("sqlite"):
            # An in-memory database lives in one connection; share it.
            poolclass = StaticPool if ":memory:" in url else None
            engine = create_async_engine(url, echo=settings.DEBUG, poolclass=poolclass)
        elif settings.ENVIRONMENT == "test":
            engine = create_async_engine(url, echo=settings.DEBUG, poolclass=NullPool)
        else:
            engine = create_async_engine(
                url,
                echo=settings.DEBUG,
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
            )
        return cls(engine, transaction_retries=settings.DATABASE_TRANSACTION_RETRIES)

    async def init(self) -> None:
        """Verify connectivity before accepting requests."""
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

    async def create_all(self) -> None:
        """Create all tables (development and tests; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close database connections gracefully."""
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session without starting a transaction block."""
        async with self.sessionmaker() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session inside a transaction.

        Commits when the block exits normally and rolls back on any exception.
        """
        async with self.sessionmaker() as session:
            async with session.begin():
                yield session

    async def run_in_transaction(
        self,
        fn: Callable[[AsyncSession], Awaitable[T]],
        *,
        retries: int | None = None,
    ) -> T:
        """Run ``fn`` in a fresh transaction, retrying the whole callback on conflict.

        The callback must read everything it depends on through the session it
        is given, so a retry observes the state left by the competing writer.

        Args:
            fn: Async callback receiving the transactional session
            retries: Attempt count override (default from settings)

        Returns:
            Whatever ``fn`` returns once its transaction commits

        Raises:
            OperationalError, IntegrityError: When every attempt conflicted
        """
        attempts = max(1, retries if retries is not None else self.transaction_retries)
        for attempt in range(1, attempts + 1):
            try:
                async with self.transaction() as session:
                    return await fn(session)
            except RETRYABLE_ERRORS as e:
                if attempt == attempts:
                    logger.error(
                        "transaction_failed",
                        attempts=attempts,
                        error_type=type(e).__name__,
                        error=str(e.orig) if e.orig is not None else str(e),
                    )
                    raise
                logger.warning(
                    "transaction_conflict_retrying",
                    attempt=attempt,
                    error_type=type(e).__name__,
                )
        raise RuntimeError("unreachable")  # pragma: no cover
