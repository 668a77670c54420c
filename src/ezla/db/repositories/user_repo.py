"""
ezla/db/repositories/user_repo.py: Репозиторий аккаунтов пользователей.
"""

from __future__ import annotations

from uuid import UUID

from ezla.database import get_connection


async def create_user(email: str, password_hash: str) -> dict:
    """Создать нового пользователя."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO users (email, password_hash)
            VALUES ($1, $2)
            RETURNING user_id, email, status, created_at
            """,
            email, password_hash,
        )
        return dict(row) if row else {}


async def get_user_by_id(user_id: UUID) -> dict | None:
    """Найти пользователя по UUID."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM users WHERE user_id = $1", user_id
        )
        return dict(row) if row else None


async def get_user_by_email(email: str) -> dict | None:
    """Найти пользователя по email (без учёта регистра)."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM users WHERE lower(email) = lower($1)", email
        )
        return dict(row) if row else None


async def delete_user(user_id: UUID) -> int:
    """Удалить пользователя."""
    async with get_connection() as conn:
        result = await conn.execute("DELETE FROM users WHERE user_id = $1", user_id)
        return int(result.split()[-1])
