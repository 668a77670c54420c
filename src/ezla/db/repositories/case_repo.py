"""
ezla/db/repositories/case_repo.py: Репозиторий дел (Case Record Store).

Переходы платёжного статуса и отправка дела выполняются условными
UPDATE ... WHERE: повторная или конкурентная доставка ITN не может
перевести дело дважды.
"""

from __future__ import annotations

from uuid import UUID

from ezla.database import get_connection

# Колонки анкеты, которые передаются в INSERT как есть.
CASE_FIELDS = (
    "illness_start", "illness_end", "recipient_type", "main_category",
    "symptom_duration", "free_text_reason", "symptoms", "pregnant",
    "pregnancy_leave", "has_allergy", "allergy_text", "has_meds", "meds_list",
    "chronic_conditions", "chronic_other", "long_leave", "late_justification",
    "attachment_file_ids", "pregnancy_card_file_id", "long_leave_docs_file_id",
    "employers", "uniformed_service_name", "uniformed_nip", "care_first_name",
    "care_last_name", "care_pesel", "med24_channel_kind", "med24_booking_intent",
)

VISIT_FIELDS = (
    "med24_visit_id", "med24_visit_status", "med24_external_tag",
    "med24_channel_kind", "med24_booking_intent", "med24_service_id",
)


async def create_case(profile_id: UUID, case_number: str, fields: dict) -> dict:
    """Создать дело в статусе draft / pending."""
    columns = [c for c in CASE_FIELDS if c in fields]
    placeholders = ", ".join(f"${i + 3}" for i in range(len(columns)))
    sql = f"""
        INSERT INTO cases (profile_id, case_number, {", ".join(columns)})
        VALUES ($1, $2, {placeholders})
        RETURNING *
    """
    async with get_connection() as conn:
        row = await conn.fetchrow(sql, profile_id, case_number, *[fields[c] for c in columns])
        return dict(row) if row else {}


async def get_case_by_id(case_id: UUID) -> dict | None:
    """Найти дело по UUID."""
    async with get_connection() as conn:
        row = await conn.fetchrow("SELECT * FROM cases WHERE id = $1", case_id)
        return dict(row) if row else None


async def get_case_by_number(case_number: str) -> dict | None:
    """Найти дело по номеру EZ-XXXXXXXXX."""
    async with get_connection() as conn:
        row = await conn.fetchrow("SELECT * FROM cases WHERE case_number = $1", case_number)
        return dict(row) if row else None


async def get_case_with_profile(case_id: UUID) -> dict | None:
    """Дело вместе со связанным профилем (ключ ``profile``)."""
    async with get_connection() as conn:
        row = await conn.fetchrow("SELECT * FROM cases WHERE id = $1", case_id)
        if not row:
            return None
        case = dict(row)
        profile = await conn.fetchrow(
            "SELECT * FROM profiles WHERE id = $1", case["profile_id"]
        )
        case["profile"] = dict(profile) if profile else None
        return case


async def case_number_exists(case_number: str) -> bool:
    async with get_connection() as conn:
        return bool(await conn.fetchval(
            "SELECT 1 FROM cases WHERE case_number = $1", case_number
        ))


async def set_payment_pending(case_id: UUID, payment_method: str) -> dict | None:
    """
    Отметить начало оплаты. Оплаченное дело не трогается.

    Returns:
        Обновлённая строка или None, если дело не найдено или уже оплачено.
    """
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE cases
               SET payment_status = 'pending', payment_method = $2, updated_at = NOW()
             WHERE id = $1 AND payment_status <> 'success'
            RETURNING *
            """,
            case_id, payment_method,
        )
        return dict(row) if row else None


async def record_payment_result(
    case_id: UUID, payment_status: str, psp_ref: str,
) -> dict | None:
    """
    Записать результат ITN, пока дело в состоянии pending.

    Returns:
        Обновлённая строка или None, если статус уже терминальный.
    """
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE cases
               SET payment_status = $2, payment_psp_ref = $3, updated_at = NOW()
             WHERE id = $1 AND payment_status = 'pending'
            RETURNING *
            """,
            case_id, payment_status, psp_ref,
        )
        return dict(row) if row else None


async def submit_if_draft(case_id: UUID) -> bool:
    """
    Атомарно перевести оплаченное дело draft → submitted.

    Returns:
        True только для единственного вызова, выполнившего переход.
    """
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            UPDATE cases
               SET status = 'submitted', updated_at = NOW()
             WHERE id = $1 AND status = 'draft' AND payment_status = 'success'
            RETURNING id
            """,
            case_id,
        )
        return row is not None


async def update_case_status(case_id: UUID, status: str, extra: dict | None = None) -> dict | None:
    """Обновить рабочий статус дела и (опционально) поля визита Med24."""
    extra = {k: v for k, v in (extra or {}).items() if k in VISIT_FIELDS}
    assignments = ["status = $2", "updated_at = NOW()", "med24_last_sync_at = NOW()"]
    values: list = [case_id, status]
    for key, value in extra.items():
        values.append(value)
        assignments.append(f"{key} = ${len(values)}")
    sql = f"UPDATE cases SET {', '.join(assignments)} WHERE id = $1 RETURNING *"
    async with get_connection() as conn:
        row = await conn.fetchrow(sql, *values)
        return dict(row) if row else None


async def update_visit(case_id: UUID, fields: dict) -> None:
    """Сохранить данные визита Med24 в деле."""
    fields = {k: v for k, v in fields.items() if k in VISIT_FIELDS}
    if not fields:
        return
    assignments = ["med24_last_sync_at = NOW()", "updated_at = NOW()"]
    values: list = [case_id]
    for key, value in fields.items():
        values.append(value)
        assignments.append(f"{key} = ${len(values)}")
    async with get_connection() as conn:
        await conn.execute(
            f"UPDATE cases SET {', '.join(assignments)} WHERE id = $1", *values
        )


async def update_visit_status_by_visit_id(visit_id: str, visit_status: dict) -> int:
    """Обновить снимок статуса визита во всех делах с этим visit_id."""
    async with get_connection() as conn:
        result = await conn.execute(
            """
            UPDATE cases
               SET med24_visit_status = $2, med24_last_sync_at = NOW()
             WHERE med24_visit_id = $1
            """,
            visit_id, visit_status,
        )
        return int(result.split()[-1])


async def append_attachment(case_id: UUID, path: str) -> None:
    """Добавить путь файла к attachment_file_ids (без дубликатов)."""
    async with get_connection() as conn:
        await conn.execute(
            """
            UPDATE cases
               SET attachment_file_ids = array_append(attachment_file_ids, $2),
                   updated_at = NOW()
             WHERE id = $1 AND NOT ($2 = ANY(attachment_file_ids))
            """,
            case_id, path,
        )


async def delete_cases_for_user(user_id: UUID) -> int:
    """Удалить все дела профилей пользователя (удаление аккаунта)."""
    async with get_connection() as conn:
        result = await conn.execute(
            """
            DELETE FROM cases
             WHERE profile_id IN (SELECT id FROM profiles WHERE user_id = $1)
            """,
            user_id,
        )
        return int(result.split()[-1])
