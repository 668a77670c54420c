"""
Пул asyncpg для хранилища дел, профилей и аккаунтов.

Репозитории берут соединение через ``get_connection()``; jsonb-колонки
(жалобы, хронические болезни, ответ Med24) приходят как dict/list.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from ezla.config import get_settings

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


def _encode_json(value) -> str:
    return json.dumps(value, default=str)


async def _register_codecs(conn: asyncpg.Connection) -> None:
    for pg_type in ("json", "jsonb"):
        await conn.set_type_codec(
            pg_type, schema="pg_catalog", encoder=_encode_json, decoder=json.loads,
        )


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is not None:
        return _pool
    settings = get_settings()
    _pool = await asyncpg.create_pool(
        settings.database_url,
        min_size=settings.database_pool_min,
        max_size=settings.database_pool_max,
        command_timeout=60,
        init=_register_codecs,
    )
    logger.info(
        "PostgreSQL pool ready (%d..%d connections)",
        settings.database_pool_min, settings.database_pool_max,
    )
    return _pool


async def close_pool() -> None:
    global _pool
    pool, _pool = _pool, None
    if pool is not None:
        await pool.close()
        logger.info("PostgreSQL pool closed")


@asynccontextmanager
async def get_connection() -> AsyncIterator[asyncpg.Connection]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


def pool_ready() -> bool:
    """False, пока сервис работает на memory store."""
    return _pool is not None


async def check_connection() -> bool:
    if not pool_ready():
        return False
    try:
        async with get_connection() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except Exception as exc:
        logger.error("PostgreSQL health probe failed: %s", exc)
        return False
