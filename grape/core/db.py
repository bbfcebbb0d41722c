import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg
from asyncpg import Connection, Pool

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the asyncpg connection pool for one application instance.

    Constructed explicitly at startup and passed to every service, so tests
    and scripts can run several isolated instances side by side.
    """

    def __init__(self, dsn: str, min_size: int = 5, max_size: int = 20) -> None:
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.pool: Optional[Pool] = None

    async def connect(self) -> None:
        """Initialize database connection pool"""
        if self.pool is not None:
            return
        self.pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
        )
        logger.info("Database pool ready (min=%d, max=%d)", self.min_size, self.max_size)

    async def close(self) -> None:
        """Close database connection pool"""
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    def _require_pool(self) -> Pool:
        if self.pool is None:
            raise RuntimeError("Database pool is not initialized, call connect() first")
        return self.pool

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Connection]:
        """Borrow a connection from the pool for a read or a single statement."""
        async with self._require_pool().acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Connection]:
        """Borrow a connection and run everything inside one transaction."""
        async with self._require_pool().acquire() as conn, conn.transaction():
            yield conn
