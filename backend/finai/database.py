import logging
from collections.abc import AsyncIterator

from fastapi import HTTPException
from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from .config import settings

logger = logging.getLogger(__name__)

# Shared async pool used by FastAPI dependencies.
pool: AsyncConnectionPool | None = None


async def init_db_pool() -> None:
    global pool

    # Keep app booting in non-DB contexts; endpoints will fail explicitly if used.
    if not settings.database_url:
        logger.warning("DATABASE_URL is not set; chat endpoints will be unavailable")
        return

    pool = AsyncConnectionPool(
        conninfo=settings.database_url,
        open=False,
        min_size=1,
        max_size=10,
        kwargs={
            "autocommit": True,
            "row_factory": dict_row,
            "options": f"-c TimeZone={settings.timezone}",
        },
    )
    await pool.open()
    logger.info("Database pool opened")


async def close_db_pool() -> None:
    global pool

    if pool is None:
        return

    await pool.close()
    pool = None


async def get_db_connection() -> AsyncIterator[AsyncConnection]:
    if pool is None:
        raise HTTPException(status_code=500, detail="DATABASE_URL is not configured")

    async with pool.connection() as connection:
        yield connection
