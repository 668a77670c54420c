"""
ezla/services/case_service.py: Дела (заявки на больничный лист).

Бизнес-правила:
    • дело создаётся в статусе draft с платёжным статусом pending;
    • дело может создать только владелец профиля, либо кто угодно
      для гостевого профиля;
    • переход в submitted возможен только из draft и только после
      успешной оплаты (условный UPDATE в репозитории).
"""

from __future__ import annotations

import logging
import re
import secrets
import string
from enum import Enum
from uuid import UUID

from ezla.db.repositories import case_repo, profile_repo
from ezla.exceptions import (
    AuthorizationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
)
from ezla.models.case import (
    CASE_NUMBER_PATTERN,
    CaseCreate,
    CaseRead,
    CaseRef,
    CaseStatusRead,
    CaseStatusUpdate,
)
from ezla.models.enums import CaseStatus
from ezla.models.user import UserRead
from ezla.services.audit_logger import EzlaAuditAction, get_audit_logger

logger = logging.getLogger(__name__)

_CASE_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
_CASE_NUMBER_RE = re.compile(CASE_NUMBER_PATTERN)


def generate_case_number() -> str:
    """Номер вида EZ-XXXXXXXXX (9 символов A-Z0-9)."""
    return "EZ-" + "".join(secrets.choice(_CASE_NUMBER_ALPHABET) for _ in range(9))


def normalize_case_number(raw: str) -> str:
    """
    Привести номер дела к каноническому виду.

    Raises:
        BadRequestError: номер не соответствует формату EZ-XXXXXXXXX.
    """
    number = raw.strip().upper()
    if not _CASE_NUMBER_RE.match(number):
        raise BadRequestError("Invalid case number format", details={"case_number": raw})
    return number


def _plain(values: dict) -> dict:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in values.items()}


async def _unique_case_number(attempts: int = 5) -> str:
    for _ in range(attempts):
        number = generate_case_number()
        if not await case_repo.case_number_exists(number):
            return number
    raise ConflictError("Could not allocate a unique case number")


async def create_case(
    data: CaseCreate, user: UserRead | None = None, *, partner: bool = False,
) -> CaseRef:
    """
    Создать дело перед оплатой.

    Партнёрский API (``partner=True``) создаёт дела для любого профиля.
    """
    profile = await profile_repo.get_profile_by_id(data.profile_id)
    if not profile:
        raise NotFoundError("Profile", str(data.profile_id))

    if not partner:
        if user is not None and profile.get("user_id") != user.user_id:
            raise AuthorizationError("Profile does not belong to the current user")
        if user is None and not profile.get("is_guest"):
            raise AuthorizationError("Authentication required for this profile")

    fields = _plain(data.model_dump(exclude={"profile_id"}))
    case_number = await _unique_case_number()
    row = await case_repo.create_case(data.profile_id, case_number, fields)

    await get_audit_logger().log(
        EzlaAuditAction.CASE_CREATED, "case", str(row["id"]),
        user_id=str(user.user_id) if user else None,
        details={"case_number": case_number},
    )
    logger.info("Case created: %s (%s)", case_number, row["id"])
    return CaseRef(id=row["id"], case_number=row["case_number"])


async def get_case_status(case_number: str) -> CaseStatusRead:
    """Статус дела по номеру (страница «Status sprawy»)."""
    number = normalize_case_number(case_number)
    row = await case_repo.get_case_by_number(number)
    if not row:
        raise NotFoundError("Case", number)
    return CaseStatusRead.model_validate(row)


async def get_case(case_id: UUID) -> CaseRead:
    """Полные данные дела вместе с профилем."""
    row = await case_repo.get_case_with_profile(case_id)
    if not row:
        raise NotFoundError("Case", str(case_id))
    return CaseRead.model_validate(row)


async def update_status(case_id: UUID, update: CaseStatusUpdate) -> CaseRead:
    """
    Обновить рабочий статус дела (партнёрский API).

    Raises:
        NotFoundError: дело не найдено.
        ConflictError: переход нарушает правило draft → submitted
            или возвращает дело в draft.
    """
    case = await case_repo.get_case_by_id(case_id)
    if not case:
        raise NotFoundError("Case", str(case_id))

    visit_fields = _plain(update.model_dump(exclude={"status"}, exclude_none=True))
    current = case["status"]
    target = update.status

    if target == CaseStatus.DRAFT and current != CaseStatus.DRAFT.value:
        raise ConflictError("Case cannot return to draft", details={"status": current})

    if target == CaseStatus.SUBMITTED and current != CaseStatus.SUBMITTED.value:
        if not await case_repo.submit_if_draft(case_id):
            raise ConflictError(
                "Case can be submitted only from draft after successful payment",
                details={"status": current, "payment_status": case["payment_status"]},
            )
        await case_repo.update_visit(case_id, visit_fields)
    else:
        await case_repo.update_case_status(case_id, target.value, visit_fields)

    await get_audit_logger().log(
        EzlaAuditAction.CASE_STATUS_UPDATED, "case", str(case_id),
        details={"from": current, "to": target.value},
    )
    return await get_case(case_id)
