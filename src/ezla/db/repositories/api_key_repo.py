"""
ezla/db/repositories/api_key_repo.py: Ключи партнёрского API.

Ключи хранятся только в виде SHA-256; проверка и учёт использования
выполняются одним UPDATE.
"""

from __future__ import annotations

from ezla.database import get_connection


async def create_api_key(name: str, key_hash: str) -> dict:
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO api_keys (name, key_hash)
            VALUES ($1, $2)
            RETURNING id, name, is_active, created_at
            """,
            name, key_hash,
        )
        return dict(row) if row else {}


async def touch_active_key(key_hash: str) -> bool:
    """Проверить активный ключ и записать факт использования."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE api_keys
               SET usage_count = usage_count + 1, last_used_at = NOW()
             WHERE key_hash = $1 AND is_active
            RETURNING id
            """,
            key_hash,
        )
        return row is not None
