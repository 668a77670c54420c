"""
ezla/services/profile_service.py: Профили пациентов и согласия.
"""

from __future__ import annotations

import logging
from uuid import UUID

from ezla.db.repositories import profile_repo
from ezla.exceptions import NotFoundError
from ezla.models.profile import ConsentUpdate, ProfileCreate, ProfileRead
from ezla.services.audit_logger import EzlaAuditAction, get_audit_logger

logger = logging.getLogger(__name__)


async def create_guest_profile(data: ProfileCreate) -> ProfileRead:
    """Создать гостевой профиль (оформление без аккаунта)."""
    row = await profile_repo.create_profile(data.model_dump(), user_id=None, is_guest=True)
    logger.info("Guest profile created: %s", row["id"])
    return ProfileRead.model_validate(row)


async def get_profile_for_user(user_id: UUID) -> ProfileRead:
    row = await profile_repo.get_profile_by_user_id(user_id)
    if not row:
        raise NotFoundError("Profile", str(user_id))
    return ProfileRead.model_validate(row)


async def save_consents(data: ConsentUpdate) -> ProfileRead:
    """
    Сохранить маркетинговые согласия и отметить время согласия.

    Поля, не переданные в запросе, не изменяются.
    """
    fields = data.model_dump(exclude={"profile_id"}, exclude_none=True)
    row = await profile_repo.update_consents(data.profile_id, fields)
    if not row:
        raise NotFoundError("Profile", str(data.profile_id))
    await get_audit_logger().log(
        EzlaAuditAction.CONSENT_UPDATED, "profile", str(data.profile_id),
        details={k: v for k, v in fields.items() if k != "consent_ip"},
    )
    return ProfileRead.model_validate(row)
