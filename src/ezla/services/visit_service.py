"""
ezla/services/visit_service.py: Бронирование визитов Med24.

Сценарии:
    • book_visit()       : создать визит по делу и сохранить его в деле,
                            затем (best effort) сформировать PDF и загрузить файлы
    • schedule_booking() : фоновое бронирование после подтверждённой оплаты
    • sync_visit()       : обновить снимок статуса визита в деле
    • upload_case_files(): загрузить вложения дела в визит

Фоновая задача изолирована: её ошибки только логируются и попадают в аудит,
ответ ITN-вебхука от них не зависит.
"""

from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from ezla import storage
from ezla.adapters import med24_client
from ezla.config import get_settings
from ezla.db.repositories import case_repo
from ezla.exceptions import BadRequestError, NotFoundError
from ezla.models.enums import BookingIntent, ChannelKind
from ezla.models.visit import (
    FileUploadResult,
    FileUploadSummary,
    Med24Consent,
    Med24Patient,
    Med24VisitRequest,
)
from ezla.services import pdf_service
from ezla.services.audit_logger import EzlaAuditAction, get_audit_logger

logger = logging.getLogger(__name__)

_pending_bookings: set[asyncio.Task] = set()


def build_visit_request(
    case: dict,
    profile: dict,
    channel_kind: ChannelKind,
    booking_intent: BookingIntent,
    service_id: str | None,
) -> Med24VisitRequest:
    """Профиль пациента → тело запроса Med24 (external_tag = номер дела)."""
    patient = Med24Patient(
        first_name=profile["first_name"],
        last_name=profile["last_name"],
        pesel=profile.get("pesel") or None,
        date_of_birth=profile.get("date_of_birth") or None,
        email=profile.get("email") or None,
        phone_number=profile.get("phone") or None,
        address=profile.get("street") or None,
        house_number=profile.get("house_no") or None,
        flat_number=profile.get("flat_no") or None,
        postal_code=profile.get("postcode") or None,
        city=profile.get("city") or None,
    )
    return Med24VisitRequest(
        channel_kind=channel_kind,
        service_id=service_id,
        patient=patient,
        external_tag=case["case_number"],
        booking_intent=booking_intent,
        consents=[
            Med24Consent(
                kind="marketing_l4_portal_email",
                is_given=bool(profile.get("consent_marketing_email")),
            ),
            Med24Consent(
                kind="marketing_l4_portal_phone",
                is_given=bool(profile.get("consent_marketing_tel")),
            ),
        ],
    )


async def book_visit(
    case_id: UUID,
    channel_kind: ChannelKind = ChannelKind.TEXT_MESSAGE,
    booking_intent: BookingIntent = BookingIntent.FINALIZE,
) -> dict:
    """
    Создать визит Med24 для дела.

    Returns:
        Объект визита, возвращённый Med24.

    Raises:
        NotFoundError: дело не найдено.
        BadRequestError: у дела нет профиля пациента.
        UpstreamError: Med24 отклонил запрос или недоступен.
        ConfigurationError: Med24 не настроен.
    """
    case = await case_repo.get_case_with_profile(case_id)
    if not case:
        raise NotFoundError("Case", str(case_id))
    profile = case.get("profile")
    if not profile:
        raise BadRequestError("Case has no patient profile", details={"case_id": str(case_id)})

    settings = get_settings()
    client = med24_client.get_med24_client()
    request = build_visit_request(
        case, profile, channel_kind, booking_intent, settings.med24_service_id,
    )
    visit = await client.create_visit(request)
    visit_id = str(visit["id"])

    await case_repo.update_visit(case_id, {
        "med24_visit_id": visit_id,
        "med24_visit_status": visit,
        "med24_external_tag": case["case_number"],
        "med24_channel_kind": channel_kind.value,
        "med24_booking_intent": booking_intent.value,
        "med24_service_id": settings.med24_service_id,
    })
    await get_audit_logger().log(
        EzlaAuditAction.VISIT_CREATED, "case", str(case_id),
        details={"visit_id": visit_id, "channel_kind": channel_kind.value},
    )
    logger.info("Med24 visit %s booked for case %s", visit_id, case["case_number"])

    await _attach_summary_and_files(case_id, visit_id)
    return visit


async def _attach_summary_and_files(case_id: UUID, visit_id: str) -> None:
    try:
        await pdf_service.generate_case_summary(case_id)
    except Exception:
        logger.exception("PDF summary generation failed for case %s", case_id)
    try:
        summary = await upload_case_files(case_id, visit_id)
        logger.info(
            "File upload complete for case %s: %d/%d", case_id, summary.uploaded, summary.total,
        )
    except Exception:
        logger.exception("File upload to Med24 failed for case %s", case_id)


async def upload_case_files(case_id: UUID, visit_id: str) -> FileUploadSummary:
    """
    Загрузить все файлы дела в визит Med24.

    Частичные ошибки допустимы: результат по каждому файлу в ``results``.
    """
    case = await case_repo.get_case_by_id(case_id)
    if not case:
        raise NotFoundError("Case", str(case_id))

    paths: list[str] = list(case.get("attachment_file_ids") or [])
    for key in ("pregnancy_card_file_id", "long_leave_docs_file_id"):
        if case.get(key):
            paths.append(case[key])
    paths = list(dict.fromkeys(paths))
    if not paths:
        logger.info("No files to upload for case %s", case_id)
        return FileUploadSummary(success=True, uploaded=0, total=0)

    client = med24_client.get_med24_client()
    results: list[FileUploadResult] = []
    for path in paths:
        try:
            content = storage.read_bytes(path)
            filename = path.rsplit("/", 1)[-1] or "attachment"
            data = await client.upload_file(
                visit_id, filename, content, storage.content_type_for(filename),
            )
            file_id = data.get("id")
            results.append(FileUploadResult(
                path=path, success=True, med24_file_id=str(file_id) if file_id else None,
            ))
        except Exception as exc:
            logger.warning("Failed to upload %s to Med24 visit %s: %s", path, visit_id, exc)
            results.append(FileUploadResult(path=path, success=False, error=str(exc)))

    uploaded = sum(1 for r in results if r.success)
    return FileUploadSummary(
        success=uploaded > 0, uploaded=uploaded, total=len(paths), results=results,
    )


async def sync_visit(visit_id: str) -> dict:
    """Получить визит из Med24 и сохранить снимок статуса в делах."""
    client = med24_client.get_med24_client()
    visit = await client.get_visit(visit_id)
    updated = await case_repo.update_visit_status_by_visit_id(visit_id, visit)
    logger.info("Med24 visit %s synced (%d case(s) updated)", visit_id, updated)
    return visit


# ═══════════════════════════════════════════════════════════════════════════════
# Фоновое бронирование после оплаты
# ═══════════════════════════════════════════════════════════════════════════════

async def _book_in_background(case_id: UUID) -> None:
    if not get_settings().med24_configured:
        logger.info("Med24 API not configured, skipping visit creation for case %s", case_id)
        return
    try:
        await book_visit(case_id, ChannelKind.PHONE_CALL, BookingIntent.FINALIZE)
    except Exception as exc:
        logger.exception("Med24 visit creation failed for case %s", case_id)
        await get_audit_logger().log(
            EzlaAuditAction.VISIT_FAILED, "case", str(case_id), details={"error": str(exc)},
        )


def schedule_booking(case_id: UUID) -> asyncio.Task:
    """Запустить бронирование визита отдельной задачей."""
    task = asyncio.create_task(_book_in_background(case_id), name=f"med24-booking-{case_id}")
    _pending_bookings.add(task)
    task.add_done_callback(_pending_bookings.discard)
    return task


async def wait_for_pending_bookings(timeout: float | None = None) -> None:
    """Дождаться фоновых бронирований (остановка сервиса, тесты)."""
    if not _pending_bookings:
        return
    _, pending = await asyncio.wait(set(_pending_bookings), timeout=timeout)
    if pending:
        logger.warning("%d Med24 booking task(s) still running at shutdown", len(pending))
