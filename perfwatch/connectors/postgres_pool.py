"""
Postgres connection pool used by the Postgres store and the schema script.

Wraps an asyncpg pool that is created lazily, retrying while the server is
still starting up or out of connection slots.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import asyncpg
from asyncpg.exceptions import CannotConnectNowError, TooManyConnectionsError

from perfwatch.config import settings

logger = logging.getLogger(__name__)

_TRANSIENT = (CannotConnectNowError, TooManyConnectionsError, ConnectionRefusedError)


class PostgresConnectionPool:
    """Lazily created asyncpg pool with connect retries and a health probe."""

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        min_size: int = 1,
        max_size: int = 10,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        command_timeout: float = 60.0,
        pool_name: str = "default",
    ):
        self.pool_name = pool_name
        self.min_size = min_size
        self.max_size = max_size
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._dsn_args = {
            "host": host,
            "port": port,
            "database": database,
            "user": user,
            "password": password,
        }
        self._command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None
        self._lock = asyncio.Lock()

    @property
    def target(self) -> str:
        args = self._dsn_args
        return f"{args['user']}@{args['host']}:{args['port']}/{args['database']}"

    @property
    def initialized(self) -> bool:
        return self._pool is not None

    async def initialize(self) -> None:
        async with self._lock:
            if self._pool is not None:
                return
            self._pool = await self._connect()
        logger.info(f"🐘 [{self.pool_name}] Connected to {self.target} (pool {self.min_size}-{self.max_size})")

    async def _connect(self) -> asyncpg.Pool:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await asyncpg.create_pool(
                    **self._dsn_args,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    command_timeout=self._command_timeout,
                )
            except _TRANSIENT as e:
                if attempt >= self.max_retries:
                    logger.error(f"[{self.pool_name}] Giving up on {self.target} after {attempt} attempts: {e}")
                    raise
                delay = self.retry_delay * attempt
                logger.warning(f"[{self.pool_name}] Connect attempt {attempt} failed ({e}); retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

    @asynccontextmanager
    async def get_connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection, creating the pool on first use."""
        if self._pool is None:
            await self.initialize()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            yield conn

    async def execute(self, query: str, *args: Any, timeout: Optional[float] = None) -> str:
        async with self.get_connection() as conn:
            return await conn.execute(query, *args, timeout=timeout)

    async def fetch_val(self, query: str, *args: Any, timeout: Optional[float] = None) -> Any:
        async with self.get_connection() as conn:
            return await conn.fetchval(query, *args, timeout=timeout)

    async def is_healthy(self) -> bool:
        if self._pool is None:
            return False
        try:
            return await self.fetch_val("SELECT 1", timeout=5.0) == 1
        except (asyncpg.PostgresError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"[{self.pool_name}] Health probe failed: {e}")
            return False

    async def close(self) -> None:
        async with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            await pool.close()
            logger.info(f"[{self.pool_name}] Pool closed")


_default_pool: Optional[PostgresConnectionPool] = None


def get_default_pool() -> PostgresConnectionPool:
    """Process-wide pool built from POSTGRES_* settings."""
    global _default_pool
    if _default_pool is None:
        _default_pool = PostgresConnectionPool(
            host=settings.POSTGRES_HOST,
            port=settings.POSTGRES_PORT,
            database=settings.POSTGRES_DATABASE,
            user=settings.POSTGRES_USER,
            password=settings.POSTGRES_PASSWORD,
            min_size=settings.POSTGRES_POOL_MIN_SIZE,
            max_size=settings.POSTGRES_POOL_MAX_SIZE,
        )
    return _default_pool

