"""
ezla/db/repositories/profile_repo.py: Репозиторий профилей пациентов.
"""

from __future__ import annotations

from uuid import UUID

from ezla.database import get_connection

PROFILE_FIELDS = (
    "first_name", "last_name", "email", "pesel", "date_of_birth", "phone",
    "street", "house_no", "flat_no", "postcode", "city", "country",
    "consent_terms", "consent_employment", "consent_call",
    "consent_no_guarantee", "consent_truth", "consent_marketing_email",
    "consent_marketing_tel",
)

CONSENT_FIELDS = ("consent_marketing_email", "consent_marketing_tel", "consent_ip")


async def create_profile(fields: dict, user_id: UUID | None = None, is_guest: bool = True) -> dict:
    """Создать профиль (гостевой или привязанный к аккаунту)."""
    columns = [c for c in PROFILE_FIELDS if c in fields]
    placeholders = ", ".join(f"${i + 3}" for i in range(len(columns)))
    sql = f"""
        INSERT INTO profiles (user_id, is_guest, {", ".join(columns)})
        VALUES ($1, $2, {placeholders})
        RETURNING *
    """
    async with get_connection() as conn:
        row = await conn.fetchrow(sql, user_id, is_guest, *[fields[c] for c in columns])
        return dict(row) if row else {}


async def get_profile_by_id(profile_id: UUID) -> dict | None:
    """Найти профиль по UUID."""
    async with get_connection() as conn:
        row = await conn.fetchrow("SELECT * FROM profiles WHERE id = $1", profile_id)
        return dict(row) if row else None


async def get_profile_by_user_id(user_id: UUID) -> dict | None:
    """Профиль аккаунта (самый ранний, если их несколько)."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM profiles WHERE user_id = $1 ORDER BY created_at LIMIT 1",
            user_id,
        )
        return dict(row) if row else None


async def update_consents(profile_id: UUID, fields: dict) -> dict | None:
    """Обновить маркетинговые согласия и отметить consent_timestamp."""
    fields = {k: v for k, v in fields.items() if k in CONSENT_FIELDS}
    assignments = ["consent_timestamp = NOW()", "updated_at = NOW()"]
    values: list = [profile_id]
    for key, value in fields.items():
        values.append(value)
        assignments.append(f"{key} = ${len(values)}")
    async with get_connection() as conn:
        row = await conn.fetchrow(
            f"UPDATE profiles SET {', '.join(assignments)} WHERE id = $1 RETURNING *",
            *values,
        )
        return dict(row) if row else None


async def delete_profiles_for_user(user_id: UUID) -> int:
    async with get_connection() as conn:
        result = await conn.execute("DELETE FROM profiles WHERE user_id = $1", user_id)
        return int(result.split()[-1])
