from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from .errors import UpstreamUnavailable


class Database:
    """Explicit handle around the async pool; opened and closed by the app lifespan."""

    def __init__(self, database_url: str, *, min_size: int = 1, max_size: int = 10) -> None:
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self._pool: AsyncConnectionPool | None = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    async def open(self) -> None:
        if self._pool is not None:
            return

        pool = AsyncConnectionPool(
            conninfo=self.database_url,
            open=False,
            min_size=self.min_size,
            max_size=self.max_size,
            kwargs={"autocommit": True, "row_factory": dict_row},
        )
        await pool.open()
        self._pool = pool
        logger.info("Database pool opened (max_size={})", self.max_size)

    async def close(self) -> None:
        if self._pool is None:
            return

        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[AsyncConnection]:
        # Centralized guard to avoid obscure None-type errors in repositories.
        if self._pool is None:
            raise UpstreamUnavailable("Database pool is not open")

        async with self._pool.connection() as connection:
            yield connection
